"""holdergate: Discord roles for proven Cardano NFT holders."""

from .backup import decode_backup, encode_backup
from .challenge import ChallengeGenerator
from .ratelimit import RateLimiter
from .reconciler import RoleAction, RoleMutation, RoleReconciler
from .store import GuildConfigStore, HolderRegistry
from .tiers import tier_for
from .verification import VerificationQueue
from .wizard import SetupWizard

__version__ = "0.1.0"

__all__ = [
    "ChallengeGenerator",
    "GuildConfigStore",
    "HolderRegistry",
    "RateLimiter",
    "RoleAction",
    "RoleMutation",
    "RoleReconciler",
    "SetupWizard",
    "VerificationQueue",
    "decode_backup",
    "encode_backup",
    "tier_for",
]
