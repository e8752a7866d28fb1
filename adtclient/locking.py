"""
The lock / mutate / unlock protocol.

The backend only accepts a change to a repository object from the
session holding the edit lock on it.  Two things tie the change to the
lock, and forgetting either gives an "invalid lock handle" error:

* the LOCK call and the change run in a *stateful* session
* both carry the same ``sap-adt-connection-id``

``LockManager.with_lock`` (or the ``locked`` context manager) is the way
to do this.  It generates a fresh connection id per call, hands the
mutation a LockHandle carrying it, and always attempts the unlock.
"""
import logging
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from adtclient.executor import RequestExecutor
from adtclient.lib import error
from adtclient.lib import uri as urilib
from adtclient.lib.debug import mask
from adtclient.protocol.types import ADTMethod, ADTRequest, ADTResponse, LockHandle, SessionType
from adtclient.protocol.xml_parsers import parse_error_message, parse_exception_type, parse_lock_response

log = logging.getLogger("adtclient")

T = TypeVar("T")

## ownership wording only; "cannot be locked" or "not locked" are plain failures
CONFLICT_MARKERS = ("locked by", "already locked", "enqueue", "currently editing", "being edited")


def new_connection_id() -> str:
    """32 hex characters, the format the Eclipse tooling uses"""
    return uuid.uuid4().hex


def is_lock_conflict(response: ADTResponse) -> bool:
    """
    True if the backend refused the lock because someone else holds it.
    Depending on release that is a 409/423, or a 403 whose exception
    document says another user holds or edits the object.
    """
    if response.status in (409, 423):
        return True
    text = " ".join(
        x for x in (parse_exception_type(response.body), parse_error_message(response.body)) if x
    ).lower()
    return any(marker in text for marker in CONFLICT_MARKERS)


class LockManager:
    def __init__(self, executor: RequestExecutor) -> None:
        self.executor = executor

    def lock(self, object_uri: str, access_mode: str = "MODIFY") -> LockHandle:
        """
        Acquire an edit lock.

        Args:
          object_uri: the object, or one of its source URIs
          access_mode: MODIFY for edits

        Returns:
          a LockHandle with a fresh connection id

        Raises:
          LockConflict: the object is locked by somebody else
          LockFailed: any other failure
        """
        uri = urilib.lock_uri(object_uri)
        request = ADTRequest(
            method=ADTMethod.POST,
            path=uri,
            params={"_action": "LOCK", "accessMode": access_mode},
            headers={"Accept": urilib.lock_accept_header(uri)},
            session_type=SessionType.STATEFUL,
            connection_id=new_connection_id(),
        )
        url = self.executor.url_for(request)
        log.debug("locking %s" % uri)
        response = self.executor.execute(request)

        if not response.ok:
            reason = parse_error_message(response.body) or response.reason
            cls = error.LockConflict if is_lock_conflict(response) else error.LockFailed
            raise cls(url=url, reason=reason, status=response.status, body=response.body)

        try:
            result = parse_lock_response(response.body)
        except error.XMLParseError as e:
            raise error.LockFailed(
                url=url,
                reason="unparsable lock response",
                status=response.status,
                body=response.body,
            ) from e
        if not result["handle"]:
            raise error.LockFailed(
                url=url,
                reason="no lock handle in response",
                status=response.status,
                body=response.body,
            )

        lock = LockHandle(
            object_uri=uri,
            handle=result["handle"],
            connection_id=request.connection_id,
            transport=result["transport"],
            owner=result["owner"],
            is_local=(result["is_local"] or "").upper() == "X",
        )
        log.debug("lock acquired on %s: %s" % (uri, mask(lock.handle)))
        return lock

    def unlock(self, lock: LockHandle) -> None:
        """
        Release a lock.  The handle counts as consumed afterwards, whether
        the backend confirmed the release or not.

        Raises:
          UnlockFailed
        """
        request = ADTRequest(
            method=ADTMethod.POST,
            path=lock.object_uri,
            params={"_action": "UNLOCK", "lockHandle": lock.handle},
            session_type=SessionType.STATELESS,
            connection_id=lock.connection_id,
        )
        url = self.executor.url_for(request)
        if lock.released:
            raise error.UnlockFailed(url=url, reason="lock handle already released")
        log.debug("unlocking %s" % lock.object_uri)
        try:
            response = self.executor.execute(request)
        except error.ADTError as e:
            raise error.UnlockFailed(url=url, reason=str(e), status=e.status, body=e.body) from e
        finally:
            lock.released = True
        if not response.ok:
            raise error.UnlockFailed(
                url=url,
                reason=parse_error_message(response.body) or response.reason,
                status=response.status,
                body=response.body,
            )

    def release(self, lock: LockHandle) -> "error.UnlockFailed | None":
        """unlock() that returns the failure instead of raising it"""
        try:
            self.unlock(lock)
        except error.UnlockFailed as e:
            return e
        return None

    @contextmanager
    def locked(self, object_uri: str, access_mode: str = "MODIFY") -> Iterator[LockHandle]:
        """
        Context manager holding a lock for the duration of the block:

            with lock_manager.locked("/programs/programs/z_report") as lock:
                client.update_source(lock.object_uri, source, lock)

        A lock failure raises before the block runs.  The unlock is always
        attempted.  If the block raises, its exception propagates, with a
        failed unlock attached as ``unlock_error``; if the block succeeds,
        a failed unlock is only logged.
        """
        lock = self.lock(object_uri, access_mode)
        try:
            yield lock
        except BaseException as exc:
            unlock_error = self.release(lock)
            if unlock_error is not None:
                log.warning("releasing %s after a failed mutation failed: %s" % (lock.object_uri, unlock_error))
                attach_unlock_error(exc, unlock_error)
            raise
        unlock_error = self.release(lock)
        if unlock_error is not None:
            log.warning("releasing %s failed: %s" % (lock.object_uri, unlock_error))

    def with_lock(
        self,
        object_uri: str,
        mutation: Callable[[LockHandle], T],
        access_mode: str = "MODIFY",
    ) -> T:
        """Lock ``object_uri``, run ``mutation(lock)``, unlock.  See ``locked``."""
        with self.locked(object_uri, access_mode) as lock:
            return mutation(lock)


def attach_unlock_error(exc: BaseException, unlock_error: error.UnlockFailed) -> None:
    try:
        exc.unlock_error = unlock_error
    except AttributeError:
        pass
    if hasattr(exc, "add_note"):
        exc.add_note("releasing the lock failed as well: %s" % unlock_error)
