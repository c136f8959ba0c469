"""Fire-and-forget launch of a chat application by its protocol handle."""

import os
import subprocess
import sys
from typing import Dict, List

from chatpilot.apps import AppProfile


def _open_command(target: str) -> List[str]:
    if sys.platform == "darwin":
        return ["open", target]
    return ["xdg-open", target]


def open_app(profile: AppProfile) -> Dict[str, object]:
    """Ask the OS to open ``profile.protocol`` (e.g. ``whatsapp://``).

    Never raises; the result dict carries ``success`` and, on failure, ``error``.
    """
    try:
        if sys.platform.startswith("win"):
            os.startfile(profile.protocol)
        else:
            subprocess.Popen(
                _open_command(profile.protocol),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
    except Exception as e:
        print(f"[LAUNCH] Error launching {profile.label}: {type(e).__name__}: {e}")
        return {"success": False, "error": f"{type(e).__name__}: {e}"}

    print(f"[LAUNCH] {profile.label} launch request sent ({profile.protocol})")
    return {"success": True}
