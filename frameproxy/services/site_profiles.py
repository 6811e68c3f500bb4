"""
Site Profiles
Declarative table of host-specific rewrite rules
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class SiteProfile(str, Enum):
    """Known hosts that need extra rewrite rules"""

    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"


@dataclass(frozen=True)
class SiteProfileRule:
    """Host matcher and the global identifiers to shadow for one profile"""

    profile: SiteProfile
    hosts: Tuple[str, ...]
    renamed_globals: Tuple[str, ...] = field(default_factory=tuple)


# New profiles are added here, the pipeline reads them by SiteProfile only
SITE_PROFILES: List[SiteProfileRule] = [
    SiteProfileRule(
        profile=SiteProfile.TIKTOK,
        hosts=("tiktok.com",),
        renamed_globals=("SIGI_STATE", "__UNIVERSAL_DATA_FOR_REHYDRATION__"),
    ),
    SiteProfileRule(
        profile=SiteProfile.YOUTUBE,
        hosts=("youtube.com", "youtu.be"),
        renamed_globals=("ytInitialPlayerResponse",),
    ),
    SiteProfileRule(
        profile=SiteProfile.INSTAGRAM,
        hosts=("instagram.com",),
        renamed_globals=("_sharedData",),
    ),
]

_RULES_BY_PROFILE: Dict[SiteProfile, SiteProfileRule] = {
    rule.profile: rule for rule in SITE_PROFILES
}


def host_matches(hostname: str, pattern: str) -> bool:
    """Exact match or dot-suffix match (example.com matches www.example.com)"""
    hostname = hostname.lower().rstrip(".")
    pattern = pattern.lower().lstrip(".")
    return hostname == pattern or hostname.endswith("." + pattern)


def resolve_site_profile(hostname: str) -> Optional[SiteProfile]:
    """Pick the profile for a hostname, or None"""
    for rule in SITE_PROFILES:
        if any(host_matches(hostname, host) for host in rule.hosts):
            return rule.profile
    return None


def get_profile_rule(profile: Optional[SiteProfile]) -> Optional[SiteProfileRule]:
    if profile is None:
        return None
    return _RULES_BY_PROFILE.get(profile)
