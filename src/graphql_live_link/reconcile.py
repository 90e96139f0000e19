"""Live result reconstruction.

A live stream starts with a full result document and continues with
RFC 6902 patch lists relative to the previous result. The reconciler
owns the running snapshot for one subscription and turns each inbound
payload into the next full result.

Payload classification happens once, at the boundary, in
`decode_payload`:

- an object carrying `data` or `errors` is a full result (Baseline)
- an array whose elements are all objects carrying `op` and `path` is a
  patch list relative to the whole result (PatchList)
- an object carrying a `patch` array is a revision envelope,
  e.g. `{"revision": 2, "patch": [...]}` (RevisionedPatch). Its paths
  are relative to the result's `data`, and its revision must follow the
  previous one. A baseline may carry the starting `revision`; when it
  does not, the first envelope must be revision 1.

Anything else is a MalformedPayloadError. The `revision` member never
appears in emitted snapshots.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal

import jsonpatch
import jsonpointer
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedPayloadError, PatchApplicationError
from .transport.base import DataEvent, ErrorEvent, RawEvent, TerminalEvent

logger = logging.getLogger(__name__)


class PatchOperation(BaseModel):
    """One RFC 6902 edit."""

    model_config = ConfigDict(populate_by_name=True)

    op: Literal["add", "remove", "replace", "move", "copy", "test"]
    path: str
    value: Any = None
    from_: str | None = Field(default=None, alias="from")

    def to_patch_dict(self) -> dict[str, Any]:
        """Wire form, omitting members the op does not take."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class QueryResponse(BaseModel):
    """Shape every emitted snapshot must have."""

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] | None = None
    errors: list[Any] | None = None
    revision: int | None = None


class PatchEnvelope(BaseModel):
    """Wire form of a revisioned patch."""

    revision: int
    patch: list[PatchOperation]
    errors: list[Any] | None = None
    extensions: dict[str, Any] | None = None


@dataclass(frozen=True)
class Baseline:
    """A full result document."""

    document: dict[str, Any]


@dataclass(frozen=True)
class PatchList:
    """Ordered edits relative to the current snapshot."""

    operations: list[PatchOperation]


@dataclass(frozen=True)
class RevisionedPatch:
    """Ordered edits relative to the current `data`, tagged with a revision.

    `errors` and `extensions` replace those of the previous result.
    """

    revision: int
    operations: list[PatchOperation]
    errors: list[Any] | None = None
    extensions: dict[str, Any] | None = None


Payload = Baseline | PatchList | RevisionedPatch


def _is_patch_entry(item: Any) -> bool:
    return isinstance(item, dict) and "op" in item and "path" in item


def _decode_operations(items: list[Any]) -> PatchList:
    try:
        return PatchList([PatchOperation.model_validate(item) for item in items])
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid patch operation: {e}", items) from e


def _decode_envelope(value: dict[str, Any]) -> RevisionedPatch:
    try:
        envelope = PatchEnvelope.model_validate(value)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid patch envelope: {e}", value) from e
    return RevisionedPatch(
        revision=envelope.revision,
        operations=envelope.patch,
        errors=envelope.errors,
        extensions=envelope.extensions,
    )


def decode_payload(value: Any) -> Payload:
    """Classify an inbound JSON value as a Baseline, PatchList or RevisionedPatch."""
    if isinstance(value, list):
        if all(_is_patch_entry(item) for item in value):
            return _decode_operations(value)
        raise MalformedPayloadError("Array payload is not a patch list", value)

    if isinstance(value, dict):
        if "patch" in value:
            return _decode_envelope(value)
        if "data" in value or "errors" in value:
            try:
                QueryResponse.model_validate(value)
            except ValidationError as e:
                raise MalformedPayloadError(f"Invalid result document: {e}", value) from e
            return Baseline(value)

    raise MalformedPayloadError("Payload is neither a result document nor a patch list", value)


class PatchReconciler:
    """Running snapshot for one live subscription.

    Not shared: each subscription gets its own reconciler, and payloads
    are applied strictly one after another.
    """

    def __init__(self) -> None:
        self._snapshot: dict[str, Any] | None = None
        self._applied = 0
        self._revision = 0

    @property
    def snapshot(self) -> dict[str, Any] | None:
        return self._snapshot

    @property
    def applied(self) -> int:
        """Number of payloads applied so far."""
        return self._applied

    @property
    def revision(self) -> int:
        """Server revision of the current snapshot (0 when untagged)."""
        return self._revision

    def reconcile(self, value: Any) -> dict[str, Any]:
        """Apply one payload and return a copy of the new snapshot.

        Raises:
            MalformedPayloadError: The payload is not a result or patch list,
                a patch arrived before any result, or an envelope's
                revision does not follow the previous one.
            PatchApplicationError: A patch operation failed. The snapshot
                is left as it was.
        """
        payload = decode_payload(value)

        if isinstance(payload, Baseline):
            if self._snapshot is not None:
                logger.debug("Replacing snapshot with a new baseline")
            document = copy.deepcopy(payload.document)
            self._revision = document.pop("revision", None) or 0
            self._snapshot = document
        elif self._snapshot is None:
            raise MalformedPayloadError("Patch received before the baseline", value)
        elif isinstance(payload, RevisionedPatch):
            self._snapshot = self._apply_revision(self._snapshot, payload, value)
            self._revision = payload.revision
        else:
            self._snapshot = self._apply(self._snapshot, payload.operations)

        self._applied += 1
        return copy.deepcopy(self._snapshot)

    def _apply_revision(
        self, snapshot: dict[str, Any], patch: RevisionedPatch, value: Any
    ) -> dict[str, Any]:
        expected = self._revision + 1
        if patch.revision != expected:
            raise MalformedPayloadError(
                f"Wrong revision received: expected {expected}, got {patch.revision}", value
            )

        result: dict[str, Any] = {"data": self._apply(snapshot.get("data"), patch.operations)}
        if patch.errors is not None:
            result["errors"] = patch.errors
        if patch.extensions is not None:
            result["extensions"] = patch.extensions
        return result

    def _apply(self, target: Any, operations: list[PatchOperation]) -> Any:
        for operation in operations:
            if operation.op in ("move", "copy") and operation.from_ is None:
                raise PatchApplicationError(
                    f"'{operation.op}' operation requires 'from'", operation.to_patch_dict()
                )

        raw = [operation.to_patch_dict() for operation in operations]
        try:
            # Applied to a copy: a failing operation leaves no partial edit behind
            return jsonpatch.apply_patch(target, raw, in_place=False)
        except jsonpatch.JsonPatchTestFailed as e:
            raise PatchApplicationError(f"Patch test failed: {e}") from e
        except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as e:
            raise PatchApplicationError(f"Patch could not be applied: {e}") from e
        except (KeyError, IndexError, TypeError) as e:
            raise PatchApplicationError(f"Patch path is invalid: {e}") from e

    async def stream(self, events: AsyncIterable[RawEvent]) -> AsyncIterator[dict[str, Any]]:
        """Reconcile a RawEvent sequence into snapshots.

        Errors carried by ErrorEvents are raised; a TerminalEvent ends
        the sequence.
        """
        async for event in events:
            if isinstance(event, DataEvent):
                yield self.reconcile(event.value)
            elif isinstance(event, ErrorEvent):
                raise event.cause
            elif isinstance(event, TerminalEvent):
                return
