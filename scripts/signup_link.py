from __future__ import annotations

import argparse

from badgeauth.core.config import ConfigFsPaths, ConfigManager
from badgeauth.core.onboarding import build_signup_link


def main() -> None:
    ap = argparse.ArgumentParser(description="Print the QR sign-up deep link (contains the default PIN).")
    ap.add_argument("--root", default=".")
    ap.add_argument("--base-url", default=None, help="Overrides web.json onboarding_base_url.")
    args = ap.parse_args()

    cm = ConfigManager(fs=ConfigFsPaths(args.root), logger=None, read_only=True)
    cfg = cm.load_all()
    base_url = args.base_url or cfg.web.onboarding_base_url
    if not base_url:
        raise SystemExit("No base URL: pass --base-url or set onboarding_base_url in config/web.json.")
    default_pin = cm.get_optional_secret("default_pin")
    if not default_pin:
        raise SystemExit("BADGEAUTH_DEFAULT_PIN is not set.")
    print(build_signup_link(base_url, default_pin))


if __name__ == "__main__":
    main()
