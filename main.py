"""Hengdian Extras dev launcher. Starts the API server in watch mode."""

import argparse
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Hengdian Extras dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--presets-dir", type=Path, default=None,
                        help="Content presets directory (default: ./presets)")
    parser.add_argument("--check-content", action="store_true",
                        help="Load the content catalogs, report counts, and exit")
    args = parser.parse_args()

    if args.check_content:
        from hengdian import ContentError, RunEngine, load_content
        presets = args.presets_dir or ROOT / "presets"
        try:
            engine = RunEngine.from_content(load_content(presets / "content"))
        except ContentError as e:
            print(f"Content error: {e}")
            sys.exit(1)
        print(f"{len(engine.perks.all())} perks, {len(engine.events.all())} events, "
              f"{len(engine.endings.all())} endings")
        return

    # Build env for the server so it picks up the same directories
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())
    if args.presets_dir:
        env["PRESETS_DIR"] = str(args.presets_dir.resolve())

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
