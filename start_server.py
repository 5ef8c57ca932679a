#!/usr/bin/env python3
"""Start script that honours the PORT environment variable."""

import os
import subprocess
import sys

port = os.environ.get("PORT", "8000")

try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

src_path = os.path.abspath("src")
pythonpath = os.environ.get("PYTHONPATH", "")
if os.path.isdir(src_path):
    os.environ["PYTHONPATH"] = f"{src_path}:{pythonpath}" if pythonpath else src_path
    sys.path.insert(0, src_path)
else:
    print(f"Warning: src directory not found at {src_path}", file=sys.stderr)

cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "walkroute.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
    "--forwarded-allow-ips", "*",
]

try:
    import walkroute.main  # noqa: F401
except ImportError as e:
    print(f"Failed to import walkroute.main: {e}", file=sys.stderr)
    print(f"   PYTHONPATH: {os.environ.get('PYTHONPATH', 'NOT SET')}", file=sys.stderr)
    sys.exit(1)

print(f"Starting server on port {port_int}...", file=sys.stderr)
try:
    result = subprocess.call(cmd)
    if result != 0:
        print(f"Uvicorn exited with code {result}", file=sys.stderr)
    sys.exit(result)
except KeyboardInterrupt:
    print("Server interrupted by user", file=sys.stderr)
    sys.exit(0)
