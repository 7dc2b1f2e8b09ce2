"""Observable unified view of every known asset."""

from typing import Any, Callable, List, Optional, Sequence, Tuple

from .models import AssetRecord, StoreLocation
from .utils.logging import get_logger


CatalogListener = Callable[[Tuple[AssetRecord, ...]], None]
SelectionListener = Callable[[Optional[Any]], None]


class AssetCatalog:
    """Merged listing of the remote and local stores.

    The catalog is a disposable projection: every refresh replaces the whole
    sequence in one assignment, so observers always see a complete snapshot.
    """

    def __init__(self, deduplicate: bool = False):
        """Initialize the catalog.

        Args:
            deduplicate: Collapse cross-store duplicates by file name, keeping
                the remote copy. Off by default, the listings are concatenated.
        """
        self.deduplicate = deduplicate
        self.logger = get_logger(self.__class__.__name__)
        self._records: Tuple[AssetRecord, ...] = ()
        self._selected: Optional[Any] = None
        self._selected_name: Optional[str] = None
        self._listeners: List[CatalogListener] = []
        self._selection_listeners: List[SelectionListener] = []

    @property
    def records(self) -> Tuple[AssetRecord, ...]:
        return self._records

    @property
    def selected(self) -> Optional[Any]:
        return self._selected

    @property
    def selected_name(self) -> Optional[str]:
        return self._selected_name

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def file_names(self) -> List[str]:
        return [record.file_name for record in self._records]

    def find(self, file_name: str) -> Optional[AssetRecord]:
        """First record with ``file_name`` (remote entries come first)."""
        for record in self._records:
            if record.file_name == file_name:
                return record
        return None

    def publish(self, remote: Sequence[AssetRecord], local: Sequence[AssetRecord]) -> Tuple[AssetRecord, ...]:
        """Replace the catalog with ``remote`` followed by ``local``."""
        merged = list(remote) + list(local)

        if self.deduplicate:
            seen = set()
            unique = []
            for record in merged:
                if record.file_name in seen:
                    continue
                seen.add(record.file_name)
                unique.append(record)
            merged = unique

        self._records = tuple(merged)

        self.logger.debug(
            "Catalog published",
            total=len(self._records),
            remote=sum(1 for r in self._records if r.location == StoreLocation.REMOTE),
            local=sum(1 for r in self._records if r.location == StoreLocation.LOCAL)
        )

        for listener in list(self._listeners):
            try:
                listener(self._records)
            except Exception as e:
                self.logger.error("Catalog listener failed", error=str(e))

        return self._records

    def set_selected(self, file_name: Optional[str], image: Optional[Any]) -> None:
        self._selected_name = file_name if image is not None else None
        self._selected = image
        for listener in list(self._selection_listeners):
            try:
                listener(image)
            except Exception as e:
                self.logger.error("Selection listener failed", error=str(e))

    def subscribe(self, listener: CatalogListener) -> Callable[[], None]:
        """Observe catalog snapshots; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def subscribe_selected(self, listener: SelectionListener) -> Callable[[], None]:
        """Observe the selected image; returns an unsubscribe callable."""
        self._selection_listeners.append(listener)
        return lambda: (
            self._selection_listeners.remove(listener)
            if listener in self._selection_listeners else None
        )
