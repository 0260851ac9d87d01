from __future__ import annotations

import argparse
import json

from badgeauth.core.config import ConfigFsPaths, ConfigManager
from badgeauth.core.config.manager import SECRET_ENV_VARS


def main() -> None:
    ap = argparse.ArgumentParser(description="Print the effective configuration (secrets shown as set/unset only).")
    ap.add_argument("--root", default=".")
    args = ap.parse_args()

    cm = ConfigManager(fs=ConfigFsPaths(args.root), logger=None, read_only=True)
    cfg = cm.load_all()
    out = cfg.model_dump()
    out["secrets"] = {name: ("set" if cm.get_optional_secret(name) else "unset") for name in SECRET_ENV_VARS}
    print(json.dumps(out, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
