"""Feature modules for quick-multisig.

- signers: Signer definitions, validation and resolution
- account: Multisig address derivation
- proposal: Signature collection, combination and execution
- multisig: Configuration and the coordinator that owns the signer set
- wallet: Local keypair credential service
"""
