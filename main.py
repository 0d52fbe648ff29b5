import logging
import socket
import sys
import threading
import time
import webbrowser

import requests
import uvicorn

import config
from db.database import Database
from db.recordings import RecordingRepository
from db.storage import BlobStorage
from processing.llm_client import create_client
from processing.summarizer import Summarizer
from processing.transcriber import Transcriber
from recorder.backend import PyAudioBackend
from recorder.session import RecordingSession
from server.app import create_app
from services.persistence import PersistenceGateway
from tray.tray_icon import TrayIcon

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("promptstudio")

MAX_PORT = 8800


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No free port between {start} and {end}")


def main():
    config.STORAGE_DIR.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, MAX_PORT)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Port %d in use, using %d", config.PORT, port)
    config.PORT = port
    base_url = f"http://{config.HOST}:{config.PORT}"

    # Components
    db = Database(config.DB_PATH)
    storage = BlobStorage(config.STORAGE_DIR, config.STORAGE_BUCKET, base_url, config.STORAGE_SECRET)
    client = create_client()
    summarizer = Summarizer(client)
    transcriber = Transcriber(client, summarizer)
    if not transcriber.is_configured:
        logger.warning("No API key for provider '%s'; recordings will be saved without transcripts",
                       config.LLM_PROVIDER)
    gateway = PersistenceGateway(RecordingRepository(db), storage, transcriber)
    session = RecordingSession(PyAudioBackend())

    app = create_app(db, session, gateway, summarizer, storage, client)

    def toggle_recording():
        api = f"{base_url}/api"
        if session.is_recording():
            requests.post(f"{api}/recording/stop", timeout=30)
        else:
            requests.post(f"{api}/recording/start", json={}, timeout=30)
        tray.update_state(session.is_recording())

    server_should_stop = threading.Event()

    def quit_app():
        logger.info("Shutting down Prompt Studio...")
        session.terminate()
        db.close()
        server_should_stop.set()

    tray = TrayIcon(on_toggle_recording=toggle_recording, on_quit=quit_app, url=base_url)

    def update_tray_state():
        while not server_should_stop.is_set():
            tray.update_state(session.is_recording(), session.elapsed())
            time.sleep(1)

    threading.Thread(target=update_tray_state, daemon=True).start()

    server = uvicorn.Server(uvicorn.Config(app, host=config.HOST, port=config.PORT, log_level="warning"))
    threading.Thread(target=server.run, daemon=True).start()

    logger.info("Prompt Studio running at %s", base_url)
    webbrowser.open(base_url)

    # The tray blocks the main thread until quit
    try:
        tray.run()
    except KeyboardInterrupt:
        pass
    finally:
        if not server_should_stop.is_set():
            quit_app()
        server.should_exit = True


if __name__ == "__main__":
    main()
