"""
Message-router envelope handler.

The router delivers {"type": "command" | "query" | "data", "payload": {...}}
envelopes. Commands and queries name an operation and carry its args;
data envelopes are acknowledged only. The reply is always a dict:

  {"status": "ok", "result": {...}}
  {"status": "error", "error": "...", "error_type": "..."}

handle() never raises.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog

from rwa_engine.core.errors import EngineError
from rwa_engine.engine import Engine
from rwa_engine.schemas.asset import AssetRecord, EntityType, ProtocolRecord
from rwa_engine.schemas.compliance import RuleCreate, RuleUpdate, TimeRange

logger = structlog.get_logger()

Operation = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def _ok(result: dict[str, Any]) -> dict[str, Any]:
    return {"status": "ok", "result": result}


def _error(message: str, error_type: str) -> dict[str, Any]:
    return {"status": "error", "error": message, "error_type": error_type}


class MessageHandler:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.commands: dict[str, Operation] = {
            "score_rwa": self._score_rwa,
            "assess_compliance": self._assess_compliance,
            "get_compliance_report": self._get_compliance_report,
            "add_rule": self._add_rule,
            "update_rule": self._update_rule,
            "remove_rule": self._remove_rule,
            "get_health": self._get_health,
        }
        self.queries: dict[str, Operation] = {
            "rwa_scoring": self._score_rwa,
            "system_status": self._system_status,
        }

    async def handle(self, envelope: dict[str, Any]) -> dict[str, Any]:
        kind = envelope.get("type")
        payload = envelope.get("payload") or {}

        if kind == "data":
            logger.debug("data_envelope_received", data_type=payload.get("type"))
            return _ok({"acknowledged": True})

        if kind == "command":
            name, table = payload.get("command"), self.commands
        elif kind == "query":
            name, table = payload.get("query"), self.queries
        else:
            logger.warning("unknown_envelope_type", envelope_type=kind)
            return _error(f"Unknown envelope type: {kind}", "UnknownEnvelope")

        operation = table.get(name)
        if operation is None:
            logger.warning("unknown_operation", envelope_type=kind, name=name)
            return _error(f"Unknown {kind}: {name}", "UnknownOperation")

        try:
            return _ok(await operation(payload.get("args") or {}))
        except KeyError as e:
            logger.warning("envelope_args_missing", name=name, argument=e.args[0])
            return _error(f"Missing argument: {e.args[0]}", "MissingArgument")
        except ValueError as e:
            # pydantic ValidationError is a ValueError
            logger.warning("envelope_args_invalid", name=name, error=str(e))
            return _error(str(e), type(e).__name__)
        except EngineError as e:
            logger.warning("envelope_operation_failed", name=name, error=e.message, error_type=type(e).__name__)
            return _error(e.message, type(e).__name__)

    # ── Operations ──

    async def _score_rwa(self, args: dict[str, Any]) -> dict[str, Any]:
        asset = AssetRecord.model_validate(args["rwa_data"])
        score = await self.engine.score_opportunity(asset)
        return {"score": score.model_dump(mode="json")}

    async def _assess_compliance(self, args: dict[str, Any]) -> dict[str, Any]:
        entity_type = EntityType(args.get("entity_type", EntityType.RWA))
        model = AssetRecord if entity_type == EntityType.RWA else ProtocolRecord
        record = model.model_validate(args["entity"])
        entity_id = args.get("entity_id", record.id)
        assessment = self.engine.assess_compliance(entity_id, entity_type, record)
        return {"assessment": assessment.model_dump(mode="json")}

    async def _get_compliance_report(self, args: dict[str, Any]) -> dict[str, Any]:
        time_range = TimeRange.model_validate(args["time_range"]) if args.get("time_range") else None
        report = self.engine.get_compliance_report(args.get("entity_ids"), args.get("jurisdiction"), time_range)
        return {"report": report.model_dump(mode="json")}

    async def _add_rule(self, args: dict[str, Any]) -> dict[str, Any]:
        rule = self.engine.add_rule(RuleCreate.model_validate(args["rule"]))
        return {"rule": rule.model_dump(mode="json")}

    async def _update_rule(self, args: dict[str, Any]) -> dict[str, Any]:
        changes = RuleUpdate.model_validate(args.get("updates") or {})
        rule = self.engine.update_rule(args["rule_id"], **changes.model_dump(exclude_none=True))
        return {"rule": rule.model_dump(mode="json")}

    async def _remove_rule(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"removed": self.engine.remove_rule(args["rule_id"])}

    async def _get_health(self, args: dict[str, Any]) -> dict[str, Any]:
        status = self.engine.get_status()
        return {"health": {"status": "healthy" if status["running"] else "stopped", **status}}

    async def _system_status(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"status": self.engine.get_status()}
