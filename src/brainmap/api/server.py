"""fastapi server for brainmap.

exposes the session commands as REST endpoints for a frontend. endpoints
that touch the session are plain functions so fastapi runs them in its
threadpool; the session locks serialize them.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..core.models import MindMap, Node
from ..core.session import CONFIG_DIR_ENV, Event, Session
from ..errors import BrainmapError
from ..formats import supported_formats

log = logging.getLogger(__name__)


# --- configuration ---

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
EVENT_BUFFER_SIZE = 100

ERROR_STATUS = {
    "not_found": 404,
    "invalid_operation": 400,
    "decode_error": 422,
    "encode_error": 422,
    "unsupported_variant": 415,
    "no_active_path": 409,
    "io_failure": 500,
    "lock_poisoned": 503,
}


# --- pydantic models for api ---

class ChildCreate(BaseModel):
    """request to append a child node."""
    parent_id: str
    content: str = ""


class SiblingCreate(BaseModel):
    """request to insert a sibling after a node."""
    node_id: str
    content: str = ""


class NodeEdit(BaseModel):
    """request to change a node's text."""
    content: str


class NavigateRequest(BaseModel):
    """direction: parent, first-child, previous-sibling, next-sibling (or left/right/up/down)."""
    direction: str


class IconAdd(BaseModel):
    icon: str


class LoadRequest(BaseModel):
    path: str


class SaveRequest(BaseModel):
    """omit path to save back to the file the document came from."""
    path: Optional[str] = None


class NodeResponse(BaseModel):
    """node in api response."""
    id: str
    content: str
    parent_id: Optional[str]
    children_ids: list[str]
    icons: list[str]
    created: int
    modified: int
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_node(cls, node: Node) -> "NodeResponse":
        return cls(
            id=node.id,
            content=node.content,
            parent_id=node.parent,
            children_ids=list(node.children),
            icons=list(node.icons),
            created=node.created,
            modified=node.modified,
            x=node.x,
            y=node.y,
            width=node.width,
            height=node.height,
        )


class DocumentResponse(BaseModel):
    """mind map in api response."""
    nodes: dict[str, NodeResponse]
    root_id: str
    selected_node_id: str
    active_path: Optional[str] = None

    @classmethod
    def from_mindmap(cls, mindmap: MindMap, active_path: Optional[str] = None) -> "DocumentResponse":
        return cls(
            nodes={k: NodeResponse.from_node(v) for k, v in mindmap.nodes.items()},
            root_id=mindmap.root_id,
            selected_node_id=mindmap.selected_node_id,
            active_path=active_path,
        )


class CommandResponse(BaseModel):
    """result of a node command: the affected node id and the updated document."""
    node_id: Optional[str] = None
    document: DocumentResponse


class PathResponse(BaseModel):
    path: Optional[str]


class RecentResponse(BaseModel):
    entries: list[str]


class FormatInfo(BaseModel):
    name: str
    extension: str
    default: bool


class MenuResponse(BaseModel):
    action: str
    path: Optional[str] = None


class EventResponse(BaseModel):
    seq: int
    name: str
    payload: dict


# --- app state ---

class AppState:
    """shared application state: the session and a buffer of its events."""

    def __init__(self, config_dir: Optional[str] = None):
        self.session = Session(config_dir=config_dir)
        self.events: deque[EventResponse] = deque(maxlen=EVENT_BUFFER_SIZE)
        self._seq = 0
        self._events_lock = threading.Lock()
        self.session.subscribe(self._record)

    def _record(self, event: Event) -> None:
        # listeners run on whichever worker thread issued the command
        with self._events_lock:
            self._seq += 1
            self.events.append(EventResponse(seq=self._seq, name=event.name, payload=event.payload))

    def events_since(self, since: int) -> list[EventResponse]:
        with self._events_lock:
            return [e for e in self.events if e.seq > since]


state = AppState()


def _document_response() -> DocumentResponse:
    """helper to build DocumentResponse from the current session."""
    session = state.session
    return DocumentResponse.from_mindmap(session.get_document(), session.get_active_path())


def _command_response(node_id: Optional[str] = None) -> CommandResponse:
    return CommandResponse(node_id=node_id, document=_document_response())


# --- lifespan ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup: restore the recent files list
    entries = state.session.recent.load()
    log.info("brainmap api ready, %d recent files", len(entries))
    yield


# --- app ---

app = FastAPI(
    title="brainmap api",
    description="REST API for editing mind map documents",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BrainmapError)
async def brainmap_error_handler(request: Request, exc: BrainmapError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.kind, 500)
    if status >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "kind": exc.kind})


# --- endpoints ---

@app.get("/health")
async def health():
    """health check."""
    return {"status": "ok", "version": __version__}


@app.get("/document", response_model=DocumentResponse)
def get_document():
    return _document_response()


@app.post("/document/new", response_model=DocumentResponse)
def new_document():
    """discard the current map and start an empty one."""
    state.session.new_document()
    return _document_response()


@app.get("/document/path", response_model=PathResponse)
def get_active_path():
    return PathResponse(path=state.session.get_active_path())


@app.post("/document/load", response_model=DocumentResponse)
def load_document(req: LoadRequest):
    """open a file; the format follows from its extension."""
    state.session.load(req.path)
    return _document_response()


@app.post("/document/save", response_model=PathResponse)
def save_document(req: SaveRequest):
    return PathResponse(path=state.session.save(req.path))


@app.post("/node/child", response_model=CommandResponse)
def add_child(req: ChildCreate):
    return _command_response(state.session.add_child(req.parent_id, req.content))


@app.post("/node/sibling", response_model=CommandResponse)
def add_sibling(req: SiblingCreate):
    return _command_response(state.session.add_sibling(req.node_id, req.content))


@app.put("/node/{node_id}", response_model=CommandResponse)
def change_node(node_id: str, req: NodeEdit):
    state.session.change_node(node_id, req.content)
    return _command_response(node_id)


@app.delete("/node/{node_id}", response_model=CommandResponse)
def remove_node(node_id: str):
    """delete a node with its subtree. node_id in the response is the former parent."""
    return _command_response(state.session.remove_node(node_id))


@app.post("/navigate", response_model=CommandResponse)
def navigate(req: NavigateRequest):
    return _command_response(state.session.navigate(req.direction))


@app.post("/select/{node_id}", response_model=CommandResponse)
def select_node(node_id: str):
    return _command_response(state.session.select_node(node_id))


@app.post("/node/{node_id}/icon", response_model=CommandResponse)
def add_icon(node_id: str, req: IconAdd):
    state.session.add_icon(node_id, req.icon)
    return _command_response(node_id)


@app.delete("/node/{node_id}/icon", response_model=CommandResponse)
def remove_last_icon(node_id: str):
    state.session.remove_last_icon(node_id)
    return _command_response(node_id)


@app.get("/recent", response_model=RecentResponse)
def list_recent():
    return RecentResponse(entries=state.session.recent_files())


@app.delete("/recent", response_model=RecentResponse)
def clear_recent():
    return RecentResponse(entries=state.session.clear_recent_files())


@app.get("/formats", response_model=list[FormatInfo])
async def list_formats():
    """supported file formats; unknown extensions are treated as the default."""
    return [FormatInfo(**f) for f in supported_formats()]


@app.post("/menu/{item_id}", response_model=MenuResponse)
def menu_action(item_id: str):
    """translate a native menu selection (e.g. `recent:0`, `recent_clear`, `save_as`)."""
    return MenuResponse(**state.session.handle_menu_action(item_id))


@app.get("/events", response_model=list[EventResponse])
def list_events(since: int = 0):
    """buffered session events with a sequence number greater than since."""
    return state.events_since(since)


@app.post("/session/recover", response_model=DocumentResponse)
def recover_session():
    """clear a poisoned session and start from an empty document."""
    state.session.recover()
    return _document_response()


# --- entrypoint ---

def serve(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    config_dir: Optional[str] = None,
    reload: bool = False,
) -> None:
    """run the api server with uvicorn."""
    import uvicorn

    global state
    if config_dir:
        # reload workers re-import this module and read the directory from the environment
        os.environ[CONFIG_DIR_ENV] = config_dir
    state = AppState(config_dir=config_dir)

    uvicorn.run(
        "brainmap.api.server:app",
        host=host,
        port=port,
        reload=reload,
    )


def main():
    """run the api server."""
    import argparse

    parser = argparse.ArgumentParser(description="brainmap api server")
    parser.add_argument("--host", default=DEFAULT_HOST, help="host to bind")
    parser.add_argument("--port", "-p", type=int, default=DEFAULT_PORT, help="port to bind")
    parser.add_argument("--config-dir", help="directory holding recent_files.json (default: ~/.brainmap)")
    parser.add_argument("--reload", action="store_true", help="enable auto-reload")

    args = parser.parse_args()
    serve(host=args.host, port=args.port, config_dir=args.config_dir, reload=args.reload)


if __name__ == "__main__":
    main()
