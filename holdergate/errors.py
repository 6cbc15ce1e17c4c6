"""Exceptions raised by holdergate core operations."""

from __future__ import annotations


class HolderGateError(Exception):
    """Base class for every error holdergate raises on purpose."""


class ValidationError(HolderGateError):
    """User input failed a format check. Nothing was changed."""


class InvalidPolicyKey(ValidationError):
    def __init__(self, policy_key: str) -> None:
        super().__init__("Invalid policy ID format. Must be 56 character hex string.")
        self.policy_key = policy_key


class InvalidAddress(ValidationError):
    def __init__(self, address: str) -> None:
        super().__init__('Invalid Cardano address. Must start with "addr1".')
        self.address = address


class SetupExpired(HolderGateError):
    """The setup session is unknown or timed out."""

    def __init__(self, setup_id: str) -> None:
        super().__init__("Setup session expired. Please run /setupverify again.")
        self.setup_id = setup_id


class UnsupportedAssetType(HolderGateError):
    """Fungible token tracking is recognized but not implemented."""

    def __init__(self, asset_type: str) -> None:
        super().__init__(f"Asset type {asset_type!r} is not supported yet.")
        self.asset_type = asset_type
