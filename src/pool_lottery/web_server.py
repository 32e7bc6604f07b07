"""FastAPI web server for the pool lottery."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pool_lottery.lottery.engine import LotteryEngine
from pool_lottery.lottery.event_manager import ANY_EVENT
from pool_lottery.lottery.exceptions import LotteryError
from pool_lottery.lottery.models import CurrentGameStatus, Entry
from pool_lottery.lottery.operator import PassiveOperator
from pool_lottery.treasury.vault import Vault
from pool_lottery.utils.common import normalize_address
from pool_lottery.utils.crypto import build_auth_message, recover_signer
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class SignedRequest(BaseModel):
    address: str
    nonce: int
    signature: Optional[str] = None


class EnterRequest(SignedRequest):
    round_count: int
    stake_per_round: int


class FaucetRequest(BaseModel):
    address: str
    amount: int


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class LotteryWebServer:
    """HTTP and WebSocket gateway for the pool lottery."""

    def __init__(
        self,
        config: Dict[str, Any],
        engine: LotteryEngine,
        vault: Vault,
        operator: Optional[PassiveOperator] = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.vault = vault
        self.operator = operator
        self._store = engine.store

        server_config = config.get("server", {})
        self._auth_required = bool(server_config.get("auth_required", True))
        self._faucet_enabled = bool(config.get("treasury", {}).get("faucet_enabled", False))
        self._nonce_lock = Lock()
        # Last accepted nonce per address; grows with every new signer and is never pruned.
        self._nonces: Dict[str, int] = {}

        self.app = FastAPI(
            title="Pool Lottery API",
            description="Round-based pooled lottery with stake-weighted draws",
            version="1.0.0",
            lifespan=self._lifespan,
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._broadcast_queue: Optional[asyncio.Queue[Tuple[str, Dict[str, Any] | None]]] = None
        self._broadcast_task: Optional[asyncio.Task[None]] = None
        self._ws_lock: Optional[asyncio.Lock] = None
        self._listeners_registered = False
        self._websockets: Set[WebSocket] = set()

        self._setup_middleware()
        self._setup_error_handlers()
        self._setup_routes()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(LotteryError)
        async def lottery_error_handler(request: Request, exc: LotteryError) -> JSONResponse:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=exc.http_status, content={"error": exc.code, "detail": str(exc)})

    def _setup_routes(self) -> None:  # noqa: C901 - routing setup intentionally verbose
        # ------------------------------------------------------------------
        # Health & status
        # ------------------------------------------------------------------
        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            operator_state = self.operator.get_status() if self.operator else {}
            return {
                "status": "ok",
                "timestamp": _utcnow(),
                "components": {
                    "web": True,
                    "engine": "initialized" if self.engine.is_initialized else "uninitialized",
                    "operator": operator_state.get("status", "disabled"),
                    "treasury": self.vault.get_client_status(),
                },
            }

        @self.app.get("/api/status")
        async def system_status() -> Dict[str, Any]:
            current = self.engine.get_current_game_status()
            history = self._store.get_round_history(limit=5)
            return {
                "timestamp": _utcnow(),
                "game": self._serialize_current_status(current),
                "seconds_until_next_round": self.engine.seconds_until_next_round(),
                "vault_balance": self.engine.vault_balance(),
                "platform_fee_percentage": self.engine.platform_fee_percentage,
                "recent_history": [self._store.serialize_snapshot(item) for item in history],
                "operator": self.operator.get_status() if self.operator else None,
                "websocket_connections": len(self._websockets),
            }

        # ------------------------------------------------------------------
        # Game views
        # ------------------------------------------------------------------
        @self.app.get("/api/game/status")
        async def get_game_status() -> Dict[str, Any]:
            status = self.engine.get_game_status()
            return {
                "round": status.round,
                "last_round_time": status.last_round_time,
                "rounds": {
                    str(round_id): [self._serialize_entry(entry) for entry in entries]
                    for round_id, entries in status.entries_by_round.items()
                },
                "unclaimed": status.unclaimed,
            }

        @self.app.get("/api/game/current")
        async def get_current_game_status() -> Dict[str, Any]:
            return self._serialize_current_status(self.engine.get_current_game_status())

        @self.app.get("/api/round/last-time")
        async def get_last_round_time() -> Dict[str, Any]:
            return {"last_round_time": self.engine.get_last_round_time()}

        @self.app.get("/api/round/players")
        async def get_current_round_player() -> Dict[str, Any]:
            return {"player_count": self.engine.get_current_round_player()}

        @self.app.get("/api/round/prize")
        async def get_current_round_prize() -> Dict[str, Any]:
            return {"prize": self.engine.get_current_round_prize()}

        @self.app.get("/api/vault/balance")
        async def get_vault_balance() -> Dict[str, Any]:
            return {"balance": self.engine.vault_balance()}

        @self.app.get("/api/unclaimed/{address}")
        async def get_unclaimed_prize(address: str) -> Dict[str, Any]:
            player = normalize_address(address)
            return {"address": player, "unclaimed": self.engine.get_unclaimed_prize(player)}

        @self.app.get("/api/players/{address}")
        async def get_player(address: str) -> Dict[str, Any]:
            player = normalize_address(address)
            return {
                "address": player,
                "balance": self.vault.account_balance(player),
                "unclaimed": self.engine.get_unclaimed_prize(player),
                "rounds": {str(r): stake for r, stake in self.engine.get_player_rounds(player).items()},
            }

        @self.app.get("/api/history")
        async def get_round_history(limit: int = 50) -> Dict[str, Any]:
            limit = max(1, min(limit, 200))
            history = self._store.get_round_history(limit=limit)
            rounds = [self._store.serialize_snapshot(item) for item in history]
            return {
                "rounds": rounds,
                "summary": {
                    "total_rounds": len(rounds),
                    "won_rounds": sum(1 for r in rounds if r["outcome"] == "WINNER"),
                    "total_prizes": sum(r["prize"] for r in rounds if r["outcome"] == "WINNER"),
                },
                "timestamp": _utcnow(),
            }

        @self.app.get("/api/activities")
        async def get_live_feed(limit: int = 50) -> Dict[str, Any]:
            limit = max(1, min(limit, 200))
            feed = self._store.get_live_feed(limit=limit)
            return {"activities": [self._store.serialize_feed_item(item) for item in reversed(feed)]}

        # ------------------------------------------------------------------
        # Signed operations
        # ------------------------------------------------------------------
        @self.app.post("/api/enter")
        async def enter_game(request: EnterRequest) -> Dict[str, Any]:
            player = self._authenticate("enter", request, {
                "round_count": request.round_count,
                "stake_per_round": request.stake_per_round,
            })
            receipt = self.engine.enter_game(player, request.round_count, request.stake_per_round)
            return {"status": "entered", "receipt": self.engine.registrar.format_receipt(receipt)}

        @self.app.post("/api/start")
        async def start_game(request: SignedRequest) -> Dict[str, Any]:
            caller = self._authenticate("start", request)
            result = self.engine.start_game(caller)
            return {
                "status": "advanced",
                "closed_round": result.closed_round,
                "round": result.new_round,
                "player_count": result.player_count,
                "prize": result.prize,
                "winner": result.winner,
                "winning_stake": result.winning_stake,
                "carried_forward": result.carried_forward,
            }

        @self.app.post("/api/claim")
        async def claim_prize(request: SignedRequest) -> Dict[str, Any]:
            caller = self._authenticate("claim", request)
            amount = self.engine.claim_prize(caller)
            return {"status": "claimed", "address": caller, "amount": amount}

        @self.app.post("/api/faucet")
        async def faucet(request: FaucetRequest) -> Dict[str, Any]:
            if not self._faucet_enabled:
                raise HTTPException(status_code=404, detail="Faucet disabled")
            if request.amount <= 0:
                raise HTTPException(status_code=400, detail="Amount must be positive")
            balance = self.vault.fund(request.address, request.amount)
            return {"address": normalize_address(request.address), "balance": balance}

        # ------------------------------------------------------------------
        # WebSocket endpoint
        # ------------------------------------------------------------------
        @self.app.websocket("/ws/lottery")
        async def websocket_endpoint(websocket: WebSocket) -> None:
            await websocket.accept()
            if self._ws_lock is None:
                self._ws_lock = asyncio.Lock()
            async with self._ws_lock:
                self._websockets.add(websocket)
            logger.info("WebSocket client connected (%s total)", len(self._websockets))
            try:
                await websocket.send_json({"type": "snapshot", "payload": self._build_initial_snapshot()})
                while True:
                    try:
                        await websocket.receive_text()
                    except WebSocketDisconnect:
                        break
            finally:
                async with self._ws_lock:
                    self._websockets.discard(websocket)
                logger.info("WebSocket client disconnected (%s remaining)", len(self._websockets))

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def _authenticate(self, action: str, request: SignedRequest, params: Optional[Dict[str, Any]] = None) -> str:
        """Return the caller address proven by the request signature.

        The signed text is ``build_auth_message(action, address, nonce, params)``;
        each address must use strictly increasing nonces.
        """
        address = normalize_address(request.address)
        if not self._auth_required:
            return address
        if not request.signature:
            raise HTTPException(status_code=401, detail="Missing signature")

        message = build_auth_message(action, address, request.nonce, params)
        try:
            signer = recover_signer(message, request.signature)
        except Exception as exc:
            logger.warning("Signature recovery failed for %s: %s", address, exc)
            raise HTTPException(status_code=401, detail="Invalid signature")
        if signer != address:
            raise HTTPException(status_code=401, detail="Signature does not match address")

        with self._nonce_lock:
            last = self._nonces.get(address)
            if last is not None and request.nonce <= last:
                raise HTTPException(status_code=401, detail=f"Nonce must be greater than {last}")
            self._nonces[address] = request.nonce
        return address

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 6080) -> None:
        import uvicorn

        logger.info("Starting pool lottery web server on %s:%s", host, port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            logger.info("Pool lottery web server stopped")

    async def stop(self) -> None:
        logger.info("Stopping pool lottery web server")
        await self._stop_broadcasting()
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        async with self._ws_lock:
            for websocket in list(self._websockets):
                try:
                    await websocket.close(code=1001, reason="Server shutdown")
                except Exception as exc:  # pragma: no cover
                    logger.debug("Error closing websocket: %s", exc)
            self._websockets.clear()

    # ------------------------------------------------------------------
    # Store listeners & broadcasting
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        await self._start_broadcasting()
        try:
            yield
        finally:
            await self._stop_broadcasting()

    async def _start_broadcasting(self) -> None:
        """Bind the broadcast queue to the serving loop and fan store events into it."""
        self._loop = asyncio.get_running_loop()
        self._broadcast_queue = asyncio.Queue()
        self._ws_lock = asyncio.Lock()
        self._register_store_listeners()
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._broadcast_loop(), name="lottery-web-broadcast")

    async def _stop_broadcasting(self) -> None:
        self._loop = None
        if self._broadcast_task:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass
            self._broadcast_task = None

    def _register_store_listeners(self) -> None:
        if self._listeners_registered:
            return
        self._store.add_listener(ANY_EVENT, self._enqueue_broadcast)
        self._listeners_registered = True

    def _enqueue_broadcast(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if not self._broadcast_queue or not self._loop:
            return
        try:
            self._loop.call_soon_threadsafe(self._broadcast_queue.put_nowait, (event_type, payload))
            logger.debug("Enqueued broadcast for %s", event_type)
        except RuntimeError:  # pragma: no cover - loop already closing
            logger.debug("Failed to enqueue broadcast for %s", event_type)

    async def _broadcast_loop(self) -> None:
        assert self._broadcast_queue is not None
        while True:
            try:
                event_type, payload = await self._broadcast_queue.get()
                await self._broadcast_to_clients(event_type, payload)
            except asyncio.CancelledError:
                break
            except Exception as exc:  # pragma: no cover
                logger.exception("Broadcast loop error: %s", exc)

    async def _broadcast_to_clients(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        message = {"type": event_type, "payload": payload, "timestamp": _utcnow()}
        async with self._ws_lock:
            if not self._websockets:
                return
            to_remove: List[WebSocket] = []
            for websocket in self._websockets:
                try:
                    await websocket.send_json(message)
                except Exception as exc:  # pragma: no cover
                    logger.debug("WebSocket send failed: %s", exc)
                    to_remove.append(websocket)
            for websocket in to_remove:
                self._websockets.discard(websocket)

    def _build_initial_snapshot(self) -> Dict[str, Any]:
        feed = self._store.get_live_feed(limit=20)
        history = self._store.get_round_history(limit=10)
        game = None
        if self.engine.is_initialized:
            game = self._serialize_current_status(self.engine.get_current_game_status())
        return {
            "game": game,
            "history": [self._store.serialize_snapshot(item) for item in history],
            "live_feed": [self._store.serialize_feed_item(item) for item in reversed(feed)],
            "operator": self.operator.get_status() if self.operator else None,
        }

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _serialize_entry(entry: Entry) -> Dict[str, Any]:
        return {"player": entry.player, "stake": entry.stake, "entered_at": entry.entered_at}

    def _serialize_current_status(self, status: CurrentGameStatus) -> Dict[str, Any]:
        return {
            "round": status.round,
            "last_round_time": status.last_round_time,
            "player_count": status.player_count,
            "prize": status.prize,
            "entries": [self._serialize_entry(entry) for entry in status.entries],
        }
