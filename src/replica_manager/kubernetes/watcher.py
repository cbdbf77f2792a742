"""Deployment watch module.

This module lists and watches the Deployments of one namespace and pushes
typed events onto the reconciler queue. Reconnection and retry live here;
the reconciler never retries anything.
"""

import logging
import queue
import random
import threading
from typing import Any

from kubernetes import watch
from kubernetes.client.exceptions import ApiException

from replica_manager.kubernetes.connection import KubernetesConnection
from replica_manager.kubernetes.events import (
    WATCH_EVENT_ADDED,
    WATCH_EVENT_BOOKMARK,
    WATCH_EVENT_DELETED,
    WATCH_EVENT_MODIFIED,
    Delete,
    DeletedFinalStateUnknown,
    DeploymentEvent,
    SyncComplete,
    Upsert,
    deployment_name,
    tombstone_key,
)

logger = logging.getLogger(__name__)


def _resource_version(obj: Any) -> str | None:
    metadata = obj.get("metadata") if isinstance(obj, dict) else getattr(obj, "metadata", None)
    if metadata is None:
        return None
    if isinstance(metadata, dict):
        return metadata.get("resourceVersion") or metadata.get("resource_version")
    return getattr(metadata, "resource_version", None)


class DeploymentWatcher:
    """List-then-watch event source for Deployments in a namespace.

    The first successful list pushes one :class:`Upsert` per Deployment followed
    by a single :class:`SyncComplete`. Watch events follow. When the watch
    expires (``410 Gone``) or fails, the watcher lists again and reports the
    Deployments that disappeared in the meantime as deletes wrapped in
    :class:`DeletedFinalStateUnknown`.
    """

    # Server-side timeout of a single watch request, the stream is reopened afterwards
    WATCH_TIMEOUT_SECONDS = 30
    # Cap of the exponential backoff between failed attempts
    MAX_BACKOFF_SECONDS = 30
    # Page size of the list requests
    LIST_BATCH_SIZE = 100

    def __init__(self, connection: KubernetesConnection, namespace: str, events: "queue.Queue[Any]"):
        """Initialize the watcher.

        Args:
            connection: The Kubernetes connection to use.
            namespace: Namespace to watch.
            events: Queue to push events onto.
        """
        self.connection = connection
        self.namespace = namespace
        self.events = events
        # Last known object per name, used to detect deletes missed by the watch
        self._known: dict[str, Any] = {}
        self._sync_sent = False
        self._stop = threading.Event()
        self._active_watcher: watch.Watch | None = None
        self._watcher_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def _emit(self, event: DeploymentEvent) -> None:
        self.events.put(event)

    def list_deployments(self, batch_size: int | None = None) -> tuple[list[Any], str | None]:
        """List every Deployment in the namespace.

        Uses pagination to fetch Deployments in batches.

        Args:
            batch_size: Number of Deployments to fetch per API call.

        Returns:
            The Deployments and the resource version of the list.
        """
        api = self.connection.apps_v1_api
        limit = batch_size or self.LIST_BATCH_SIZE
        items: list[Any] = []
        continue_token = None
        resource_version = None

        while True:
            result = api.list_namespaced_deployment(self.namespace, limit=limit, _continue=continue_token)
            items.extend(result.items or [])
            resource_version = result.metadata.resource_version

            # Check if there are more pages to process
            continue_token = result.metadata._continue
            if not continue_token:
                break

        return items, resource_version

    def relist(self) -> str | None:
        """List Deployments and push the resulting events.

        Returns:
            The resource version to resume watching from.
        """
        items, resource_version = self.list_deployments()

        seen: set[str] = set()
        for item in items:
            name = deployment_name(item)
            if name is not None:
                seen.add(name)
                self._known[name] = item
            self._emit(Upsert(item))

        for name in set(self._known) - seen:
            last_known = self._known.pop(name)
            key = tombstone_key(last_known) or name
            logger.info(f"Deployment {key} disappeared while the watch was disconnected")
            self._emit(Delete(DeletedFinalStateUnknown(key=key, obj=last_known)))

        if not self._sync_sent:
            self._emit(SyncComplete())
            self._sync_sent = True

        logger.debug(f"Listed {len(items)} deployments in namespace {self.namespace} at {resource_version}")
        return resource_version

    def handle_watch_event(self, event: dict) -> str | None:
        """Translate a raw watch event into a queued event.

        Args:
            event: The event yielded by :meth:`kubernetes.watch.Watch.stream`.

        Returns:
            The resource version carried by the event object, if any.
        """
        event_type = str(event.get("type", ""))
        obj = event.get("object")

        if event_type in (WATCH_EVENT_ADDED, WATCH_EVENT_MODIFIED):
            name = deployment_name(obj)
            if name is not None:
                self._known[name] = obj
            self._emit(Upsert(obj))
        elif event_type == WATCH_EVENT_DELETED:
            name = deployment_name(obj)
            if name is not None:
                self._known.pop(name, None)
            self._emit(Delete(obj))
        elif event_type != WATCH_EVENT_BOOKMARK:
            logger.warning(f"Ignoring watch event of unknown type {event_type!r}")
            return None

        return _resource_version(obj)

    def _watch(self, resource_version: str | None) -> str | None:
        watcher = watch.Watch()
        with self._watcher_lock:
            self._active_watcher = watcher
        try:
            stream = watcher.stream(
                self.connection.apps_v1_api.list_namespaced_deployment,
                namespace=self.namespace,
                resource_version=resource_version,
                timeout_seconds=self.WATCH_TIMEOUT_SECONDS,
                allow_watch_bookmarks=True,
            )
            for event in stream:
                if self._stop.is_set():
                    break
                if event.get("type") == "ERROR":
                    raw = event.get("raw_object") or {}
                    raise ApiException(status=raw.get("code"), reason=raw.get("message"))
                new_version = self.handle_watch_event(event)
                if new_version:
                    resource_version = new_version
        finally:
            watcher.stop()
            with self._watcher_lock:
                if self._active_watcher is watcher:
                    self._active_watcher = None
        return resource_version

    def run(self) -> None:
        """List then watch until :meth:`stop` is called.

        Errors never escape this method: they are logged and retried with
        exponential backoff and jitter.
        """
        logger.info(f"Starting deployment watch in namespace {self.namespace}")
        resource_version = None
        needs_list = True
        backoff_seconds = 1

        while not self._stop.is_set():
            try:
                if needs_list:
                    resource_version = self.relist()
                    needs_list = False
                    logger.info(f"Watching deployments from resourceVersion {resource_version}")
                resource_version = self._watch(resource_version)
                backoff_seconds = 1
                continue
            except ApiException as e:
                needs_list = True
                if e.status == 410:
                    # etcd compacted past our resourceVersion, list again right away
                    logger.warning("Watch resource version expired, re-listing")
                    continue
                logger.error(f"Kubernetes API error while watching deployments: {e.status} {e.reason}")
            except Exception as e:
                needs_list = True
                logger.error(f"Error watching deployments: {e}")

            jittered = backoff_seconds * (0.5 + random.random())
            self._stop.wait(timeout=jittered)
            backoff_seconds = min(backoff_seconds * 2, self.MAX_BACKOFF_SECONDS)

        logger.info("Deployment watch stopped")

    def start(self) -> None:
        """Start watching on a daemon thread."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="deployment-watcher", daemon=True)
        self._thread.start()

    def request_stop(self) -> None:
        """Request a cooperative stop and interrupt the open watch stream."""
        self._stop.set()
        with self._watcher_lock:
            active_watcher = self._active_watcher
        if active_watcher is not None:
            active_watcher.stop()

    def stop(self, timeout: float | None = None) -> None:
        """Stop watching and wait for the thread to exit.

        Args:
            timeout: Maximum number of seconds to wait for the thread.
        """
        self.request_stop()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Deployment watch did not stop within the timeout")
        self._thread = None
