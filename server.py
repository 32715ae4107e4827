import sys

import uvicorn

HOST = "127.0.0.1"
PORT = 8765


def main():
    reload = "--reload" in sys.argv[1:]
    print(f"[server] LinkPilot API on http://{HOST}:{PORT}/api")
    if reload:
        print("[server] Reloading on changes under linkpilot/")
    uvicorn.run(
        "linkpilot.main:app",
        host=HOST,
        port=PORT,
        log_level="info",
        reload=reload,
        reload_dirs=["linkpilot"] if reload else None,
    )
    print("[server] Shutting down.")


if __name__ == "__main__":
    main()
