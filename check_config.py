"""
Configuration Validator for Frame Proxy
Displays the fetch, fallback and rewrite configuration currently in effect
"""

from config.settings import get_settings
from frameproxy.services.site_profiles import SITE_PROFILES
from frameproxy.services.upstream_fetcher import HeaderProfile
import sys


def check_config(settings=None) -> bool:
    """Check and display proxy configuration"""

    print("🔍 Checking Frame Proxy Configuration...")
    print("=" * 50)

    try:
        settings = settings or get_settings()
        header_profile = HeaderProfile.from_settings(settings)
    except Exception as e:
        print(f"❌ Error: {str(e)}")
        print()
        print("Make sure your .env file only sets known settings with valid values")
        return False

    print(f"✅ Settings loaded successfully!")
    print()

    print("🌐 Upstream Fetch:")
    print(f"   Timeout: {settings.request_timeout}s")
    print(f"   User-Agent: {settings.browser_headers.get('User-Agent', '(none)')}")
    for pattern in sorted(header_profile.overrides):
        print(f"   Override [{pattern}]: {', '.join(header_profile.overrides[pattern])}")
    print()

    print("🔁 Fallbacks:")
    relay = settings.cors_relay_url if settings.cors_relay_enabled else "disabled"
    print(f"   CORS relay: {relay}")
    print(f"   Placeholder hosts: {', '.join(settings.placeholder_hosts) or '(none)'}")
    print()

    print("🧩 Site Profiles:")
    if not settings.site_profiles_enabled:
        print("   disabled")
    for rule in SITE_PROFILES:
        print(f"   {rule.profile.value}: {', '.join(rule.hosts)} -> {len(rule.renamed_globals)} globals")

    if settings.request_timeout <= 0:
        print(f"⚠️  WARNING: request_timeout must be positive")
        return False

    return True


if __name__ == "__main__":
    success = check_config()
    sys.exit(0 if success else 1)
