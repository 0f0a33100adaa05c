"""Document base class."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ninja_unimodel.exceptions import UnsupportedOperationError
from ninja_unimodel.hooks import POST_INIT

if TYPE_CHECKING:
    from ninja_unimodel.model import Model


class Document:
    """Superclass of all record handles.

    Documents are created by ``model.create()`` or returned from queries,
    never instantiated directly. Constructing one fires the model's
    ``post-init`` hook synchronously, so listeners may adjust ``data``.
    """

    def __init__(self, model: Model, data: dict[str, Any] | None = None) -> None:
        self.model = model
        self.data: dict[str, Any] = data if data is not None else {}
        model.hooks.trigger_sync(POST_INIT, self)

    def get_data(self) -> dict[str, Any]:
        """Return the mutable data mapping backing this document."""
        return self.data

    def get_model(self) -> Model:
        return self.model

    async def save(self) -> Document:
        """Persist the document, firing ``pre-save``/``post-save``."""
        raise UnsupportedOperationError(
            operation="save", detail="save() is not implemented for this model", model_name=self.model.name
        )

    async def remove(self) -> Document:
        """Delete the document, firing ``pre-remove``/``post-remove``."""
        raise UnsupportedOperationError(
            operation="remove", detail="remove() is not implemented for this model", model_name=self.model.name
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.name!r}, {self.data!r})"
