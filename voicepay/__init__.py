"""VoicePay: voice-driven payments on Polkadot-ecosystem chains."""
