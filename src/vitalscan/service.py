"""FastAPI service exposing the rPPG session pipeline.

A browser (or any capture client) averages skin-region RGB itself and POSTs
the samples to ``/ingest``; the service runs them through one
:class:`CaptureStateMachine`. The session timer is advanced either by the
built-in background loop (one tick per second) or by clients calling
``/tick`` when they drive their own clock.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, model_validator

from .config import PipelineConfig
from .pipeline import CaptureStateMachine, Phase, Sample

logger = logging.getLogger(__name__)


class ControlModel(BaseModel):
    buffer_capacity: Optional[int] = Field(None, ge=64, le=4096)
    min_bpm: Optional[float] = Field(None, ge=20.0, le=100.0)
    max_bpm: Optional[float] = Field(None, ge=100.0, le=300.0)
    session_duration_sec: Optional[int] = Field(None, ge=5, le=600)
    calibration_warmup_frames: Optional[int] = Field(None, ge=0, le=1000)
    analysis_interval_sec: Optional[float] = Field(None, ge=0.1, le=5.0)
    analysis_window_sec: Optional[float] = Field(None, ge=2.0, le=20.0)
    baseline: Optional[str] = Field(None, pattern=r"^(mean|ema)$")
    smooth_radius: Optional[int] = Field(None, ge=0, le=10)
    bandpass: Optional[bool] = None
    snr_accept_threshold: Optional[float] = Field(None, ge=0.0, le=10.0)
    variance_reject_floor: Optional[float] = Field(None, ge=0.0, le=10.0)
    respiration_ratio: Optional[float] = Field(None, ge=2.0, le=8.0)


class IngestModel(BaseModel):
    t0: float
    dt: float = Field(..., gt=0.0)
    mean_rgb: Optional[list[list[float]]] = None
    values: Optional[list[float]] = None
    has_face: bool = True

    @model_validator(mode="after")
    def _one_payload(self) -> "IngestModel":
        if (self.mean_rgb is None) == (self.values is None):
            raise ValueError("provide exactly one of mean_rgb or values")
        if self.mean_rgb is not None and any(len(px) != 3 for px in self.mean_rgb):
            raise ValueError("mean_rgb rows must be [r, g, b]")
        return self


def make_app(cfg: Optional[PipelineConfig] = None, autotick: bool = True) -> FastAPI:
    machine = CaptureStateMachine(cfg)
    lock = asyncio.Lock()
    ws_clients: set[WebSocket] = set()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # pragma: no cover - integration
        tick_task = asyncio.create_task(tick_loop()) if autotick else None
        try:
            yield
        finally:
            if tick_task is not None:
                tick_task.cancel()
                try:
                    await tick_task
                except asyncio.CancelledError:
                    pass

    app = FastAPI(title="vitalscan", version="0.1.0", lifespan=lifespan)
    app.state.machine = machine
    app.state.ws_clients = ws_clients

    async def broadcast() -> None:
        if not ws_clients:
            return
        msg = json.dumps(machine.state())
        dead: list[WebSocket] = []
        for w in list(ws_clients):
            try:
                await w.send_text(msg)
            except (WebSocketDisconnect, RuntimeError):
                dead.append(w)
        for w in dead:
            ws_clients.discard(w)

    async def tick_loop() -> None:  # pragma: no cover - integration
        while True:
            try:
                await asyncio.sleep(1.0)
                async with lock:
                    machine.on_tick()
                await broadcast()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("tick loop iteration failed")

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.get("/state")
    async def get_state() -> dict:
        async with lock:
            return machine.state()

    @app.get("/report")
    async def get_report() -> dict:
        async with lock:
            if machine.report is None:
                raise HTTPException(status_code=404, detail="no report yet")
            return machine.report.to_dict()

    @app.post("/start")
    async def post_start() -> dict:
        async with lock:
            machine.start()
            return machine.state()

    @app.post("/reset")
    async def post_reset() -> dict:
        async with lock:
            machine.reset()
            return machine.state()

    @app.post("/finish")
    async def post_finish() -> dict:
        async with lock:
            machine.finish()
            return machine.state()

    @app.post("/tick")
    async def post_tick() -> dict:
        async with lock:
            machine.on_tick()
            state = machine.state()
        await broadcast()
        return state

    @app.post("/control")
    async def post_control(ctl: ControlModel) -> dict:
        async with lock:
            if machine.phase in (Phase.CALIBRATING, Phase.MEASURING):
                raise HTTPException(status_code=409, detail="session in progress")
            data = ctl.model_dump(exclude_none=True)
            try:
                machine.cfg = machine.cfg.updated(**data)
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            logger.info("config updated: %s", data)
            return {"status": "ok", "params": machine.cfg.to_dict()}

    @app.post("/ingest")
    async def post_ingest(payload: IngestModel) -> dict:
        if payload.mean_rgb is not None:
            samples = [
                Sample.from_rgb(r, g, b, payload.t0 + i * payload.dt, payload.has_face)
                for i, (r, g, b) in enumerate(payload.mean_rgb)
            ]
        else:
            samples = [
                Sample(float(v), payload.t0 + i * payload.dt, payload.has_face)
                for i, v in enumerate(payload.values or [])
            ]
        if not samples:
            return {"status": "empty"}
        analyses = 0
        signal: Optional[float] = None
        async with lock:
            for s in samples:
                upd = machine.on_sample(s)
                if upd.estimate is not None:
                    analyses += 1
                if upd.signal is not None:
                    signal = upd.signal
            phase = machine.phase.value
        if analyses:
            await broadcast()
        return {
            "status": "ok",
            "count": len(samples),
            "analyses": analyses,
            "phase": phase,
            "signal": signal,
        }

    @app.websocket("/ws")
    async def ws_state(ws: WebSocket) -> None:  # pragma: no cover - integration
        await ws.accept()
        ws_clients.add(ws)
        try:
            while True:
                # updates are pushed by ticks and ingests
                await ws.receive_text()
        except WebSocketDisconnect:
            ws_clients.discard(ws)

    return app


app = make_app()


def main() -> None:  # pragma: no cover - manual run helper
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":  # pragma: no cover
    main()
