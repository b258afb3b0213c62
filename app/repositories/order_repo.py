# app/repositories/order_repo.py
import logging
from typing import Any, Mapping

from supabase import AsyncClient

from app.core.errors import ExternalWriteFailure, StatusPreconditionFailed
from app.repositories.ports import RawOrderDocument
from app.schemas.order import OrderStatus

logger = logging.getLogger(__name__)

# Any stored value outside these labels (NULL, "", typos) reads as Pendente
_NON_PENDING_LABELS = ",".join(
    f'"{s.value}"' for s in OrderStatus if s != OrderStatus.PENDING
)
PENDING_PRECONDITION = f"status.is.null,status.not.in.({_NON_PENDING_LABELS})"


class OrderRepository:
    """
    Data access layer for the order documents table.

    NOTE:
      - Reads always return the full collection, newest first.
      - The only write is a status change guarded by the expected
        previous status.
    """

    def __init__(
        self,
        client: AsyncClient,
        table: str = "pedidos",
        created_field: str = "criadoEm",
    ):
        self.client = client
        self.table = table
        self.created_field = created_field

    async def list_all(self) -> list[RawOrderDocument]:
        response = await (
            self.client.table(self.table)
            .select("*")
            .order(self.created_field, desc=True)
            .execute()
        )
        docs: list[RawOrderDocument] = []
        for row in response.data or []:
            if row.get("id") is None:
                logger.warning("Skipping %s row without id", self.table)
                continue
            docs.append(self._to_document(row))
        return docs

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected: OrderStatus,
    ) -> None:
        """
        Set `status` on one document if it is still `expected`.

        When Pendente is expected, every stored value that reads as
        Pendente matches (the label itself, NULL, or any unknown text).

        Raises:
            ExternalWriteFailure: the request itself failed.
            StatusPreconditionFailed: no row matched id + expected status
                (diverged concurrently, or the order no longer exists).
        """
        query = (
            self.client.table(self.table)
            .update({"status": status.value})
            .eq("id", order_id)
        )
        if expected == OrderStatus.PENDING:
            query = query.or_(PENDING_PRECONDITION)
        else:
            query = query.eq("status", expected.value)

        try:
            response = await query.execute()
        except Exception as exc:
            raise ExternalWriteFailure(order_id, f"Status write failed: {exc}") from exc

        if not response.data:
            raise StatusPreconditionFailed(order_id, expected.value, status.value)

    @staticmethod
    def _to_document(row: Mapping[str, Any]) -> RawOrderDocument:
        data = {k: v for k, v in row.items() if k != "id"}
        return RawOrderDocument(id=str(row["id"]), data=data)
