"""
FastAPI backend for IsoForts.
Stores fort snapshots and applies player actions through the engine reducer.
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .database import get_db, init_db
from .models import Fort

from backend.config import DEFAULT_CONFIG
from backend.engine.actions import (
    Action,
    add_resources,
    advance_from_repair,
    complete_siege,
    continue_to_build,
    place_tile,
    place_tiles,
    play_card,
    ready,
    repair_tile,
    select_damaged_tile,
    select_tool,
    set_underground_view,
    submit_name,
    tick,
    toggle_free_builder,
)
from backend.engine.definitions import load_static_definitions
from backend.engine.phases import PHASE_ORDER, current_time_ms
from backend.engine.queries import (
    get_fort_summary,
    get_playable_cards,
    get_repair_options,
    get_tool_palette,
    get_underground_buildable_keys,
    validate_action,
)
from backend.engine.reducer import apply_action
from backend.engine.state import GameState
from backend.engine.utils import generate_siege_rolls, initialize_game_state

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables before the first request."""
    init_db()
    logger.info("Fort database ready")
    yield


app = FastAPI(
    title="IsoForts API",
    description="Backend API for IsoForts - a round-based isometric fort builder",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with CORS headers so the frontend can read the error."""
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
    origin = request.headers.get("origin")
    allow_origin = origin if origin in CORS_ORIGINS else CORS_ORIGINS[0]
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
        },
    )


building_defs, tool_defs, card_defs = load_static_definitions()
config = DEFAULT_CONFIG


# ===== Pydantic Models =====

class CreateFortRequest(BaseModel):
    fort_name: str | None = None
    grid_size: int | None = Field(default=None, ge=4, le=200)


class NameRequest(BaseModel):
    fort_name: str = ""


class TimedRequest(BaseModel):
    """now: ms timestamp; omitted = server time."""
    now: int | None = None


class SiegeRequest(BaseModel):
    """seed makes the siege reproducible; rolls (key -> [0, 1)) override random rolls entirely."""
    seed: int | None = None
    rolls: dict[str, float] | None = None


class ToolRequest(BaseModel):
    tool: str


class PlaceRequest(BaseModel):
    x: int
    y: int


class PlacePathRequest(BaseModel):
    tiles: list[tuple[int, int]]


class RepairRequest(BaseModel):
    key: str


class SelectDamagedRequest(BaseModel):
    key: str | None = None


class PlayCardRequest(BaseModel):
    card_id: str


class AddResourcesRequest(BaseModel):
    wood: int = Field(default=0, ge=0)
    stone: int = Field(default=0, ge=0)
    food: int = Field(default=0, ge=0)


class UndergroundRequest(BaseModel):
    show: bool


# ===== Helper Functions =====

def _fort_row(fort_id: str, db: Session) -> Fort:
    row = db.query(Fort).filter(Fort.id == fort_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Fort {fort_id} not found")
    return row


def _write_row(row: Fort, state: GameState) -> None:
    row.fort_name = state.fort_name
    row.game_state = state.to_json()
    row.grid_size = state.grid_size
    row.round = state.round
    row.phase = state.phase
    row.defense = state.stats.get("defense", 0)
    row.saved_at = datetime.utcnow()


def get_fort(fort_id: str, db: Session) -> GameState:
    """
    Load a fort snapshot; raise 404 if the fort does not exist.
    A corrupt snapshot is logged and replaced by a freshly initialized fort.
    A snapshot saved before the round system is stored back once, so its build deadline sticks.
    """
    row = _fort_row(fort_id, db)
    try:
        data = json.loads(row.game_state)
        state = GameState.from_dict(data)
        if data.get("phase") not in PHASE_ORDER:
            logger.info("Fort %s has no round phase; resuming in %s", fort_id, state.phase)
            _write_row(row, state)
            db.commit()
        return state
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Fort %s has a corrupt snapshot (%s); starting a fresh fort", fort_id, e)
        state = initialize_game_state(config, fort_name=row.fort_name, grid_size=row.grid_size, fort_id=row.id)
        _write_row(row, state)
        db.commit()
        return state


def save_fort(state: GameState, db: Session) -> None:
    """Persist fort snapshot to DB."""
    row = _fort_row(state.id, db)
    _write_row(row, state)
    db.commit()


def state_for_response(state: GameState) -> dict[str, Any]:
    """State dict plus the computed summary the UI shows around the map."""
    out = state.to_dict()
    out["summary"] = get_fort_summary(state, current_time_ms())
    return out


def _run_action(fort_id: str, action: Action, db: Session) -> dict[str, Any]:
    """Apply one action and persist the result. Invalid phase transitions become 400."""
    state = get_fort(fort_id, db)
    try:
        new_state, events = apply_action(state, action, building_defs, card_defs, config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if new_state is not state:
        save_fort(new_state, db)
    return {
        "state": state_for_response(new_state),
        "events": [e.to_dict() for e in events],
    }


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "IsoForts API", "version": "1.0.0"}


@app.get("/definitions")
def get_definitions():
    """Get all static game definitions."""
    return {
        "buildings": {k: asdict(v) for k, v in building_defs.items()},
        "tools": {k: asdict(v) for k, v in tool_defs.items()},
        "cards": {k: asdict(v) for k, v in card_defs.items()},
    }


# ----- Forts (create, list, load, delete) -----

@app.post("/forts")
def create_fort(request: CreateFortRequest, db: Session = Depends(get_db)):
    """Create a new fort in the name_entry phase."""
    state = initialize_game_state(
        config,
        fort_name=request.fort_name,
        grid_size=request.grid_size,
        fort_id=str(uuid.uuid4()),
    )
    row = Fort(id=state.id, created_at=datetime.utcnow())
    _write_row(row, state)
    db.add(row)
    db.commit()
    logger.info("Created fort %s (%dx%d)", state.id, state.grid_size, state.grid_size)
    return {"fort_id": state.id, "state": state_for_response(state)}


@app.get("/forts")
def list_forts(db: Session = Depends(get_db)):
    """Saved forts, most recently saved first."""
    rows = db.query(Fort).order_by(Fort.saved_at.desc()).all()
    return {
        "forts": [
            {
                "id": row.id,
                "fort_name": row.fort_name,
                "round": row.round,
                "phase": row.phase,
                "defense": row.defense,
                "grid_size": row.grid_size,
                "created_at": row.created_at.isoformat() if row.created_at else None,
                "saved_at": row.saved_at.isoformat() if row.saved_at else None,
            }
            for row in rows
        ]
    }


@app.get("/forts/{fort_id}")
def get_fort_state(fort_id: str, db: Session = Depends(get_db)):
    state = get_fort(fort_id, db)
    return {"fort_id": fort_id, "state": state_for_response(state)}


@app.delete("/forts/{fort_id}")
def delete_fort(fort_id: str, db: Session = Depends(get_db)):
    row = _fort_row(fort_id, db)
    db.delete(row)
    db.commit()
    return {"message": f"Fort {fort_id} deleted"}


@app.get("/forts/{fort_id}/available-actions")
def get_available_actions(fort_id: str, db: Session = Depends(get_db)):
    """Everything the UI needs to decide which controls to enable."""
    state = get_fort(fort_id, db)
    return {
        "summary": get_fort_summary(state, current_time_ms()),
        "tools": get_tool_palette(state, tool_defs),
        "cards": get_playable_cards(state, card_defs),
        "repair_options": get_repair_options(state, config),
        "underground_buildable": get_underground_buildable_keys(state) if state.show_underground else [],
    }


# ----- Phase transitions -----

@app.post("/forts/{fort_id}/name")
def do_submit_name(fort_id: str, request: NameRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, submit_name(request.fort_name), db)


@app.post("/forts/{fort_id}/continue")
def do_continue_to_build(fort_id: str, request: TimedRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, continue_to_build(request.now), db)


@app.post("/forts/{fort_id}/ready")
def do_ready(fort_id: str, db: Session = Depends(get_db)):
    return _run_action(fort_id, ready(), db)


@app.post("/forts/{fort_id}/siege")
def do_complete_siege(fort_id: str, request: SiegeRequest, db: Session = Depends(get_db)):
    """Resolve the siege. Rolls are drawn here so the reducer itself stays deterministic."""
    state = get_fort(fort_id, db)
    rolls = request.rolls if request.rolls is not None else generate_siege_rolls(state, request.seed)
    return _run_action(fort_id, complete_siege(rolls), db)


@app.post("/forts/{fort_id}/advance")
def do_advance_from_repair(fort_id: str, request: TimedRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, advance_from_repair(request.now), db)


@app.post("/forts/{fort_id}/tick")
def do_tick(fort_id: str, request: TimedRequest, db: Session = Depends(get_db)):
    """Poll the phase deadline (build timer, round-end pause)."""
    return _run_action(fort_id, tick(request.now), db)


# ----- Building -----

@app.post("/forts/{fort_id}/tool")
def do_select_tool(fort_id: str, request: ToolRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, select_tool(request.tool), db)


@app.post("/forts/{fort_id}/place")
def do_place_tile(fort_id: str, request: PlaceRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, place_tile(request.x, request.y), db)


@app.post("/forts/{fort_id}/place-path")
def do_place_tiles(fort_id: str, request: PlacePathRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, place_tiles(list(request.tiles)), db)


@app.post("/forts/{fort_id}/cards/play")
def do_play_card(fort_id: str, request: PlayCardRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, play_card(request.card_id), db)


# ----- Repair -----

@app.post("/forts/{fort_id}/select-damaged")
def do_select_damaged(fort_id: str, request: SelectDamagedRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, select_damaged_tile(request.key), db)


@app.post("/forts/{fort_id}/repair")
def do_repair(fort_id: str, request: RepairRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, repair_tile(request.key), db)


# ----- View / debug -----

@app.post("/forts/{fort_id}/underground")
def do_set_underground(fort_id: str, request: UndergroundRequest, db: Session = Depends(get_db)):
    return _run_action(fort_id, set_underground_view(request.show), db)


@app.post("/forts/{fort_id}/free-builder")
def do_toggle_free_builder(fort_id: str, db: Session = Depends(get_db)):
    return _run_action(fort_id, toggle_free_builder(), db)


@app.post("/forts/{fort_id}/resources")
def do_add_resources(fort_id: str, request: AddResourcesRequest, db: Session = Depends(get_db)):
    """Debug grant (clamped at caps)."""
    return _run_action(fort_id, add_resources(request.model_dump()), db)


@app.post("/forts/{fort_id}/validate")
def do_validate(fort_id: str, action: dict, db: Session = Depends(get_db)):
    """Check whether an action type is allowed right now without applying it."""
    state = get_fort(fort_id, db)
    result = validate_action(state, Action(type=str(action.get("type", "")), payload=action.get("payload") or {}))
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
