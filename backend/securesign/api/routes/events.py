from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session

from securesign.api.deps import get_db, user_from_token
from securesign.core.errors import NotFound, SigningError
from securesign.core.logging_setup import logger
from securesign.models.document import Document
from securesign.services.access import AccessGate, Capability
from securesign.services.realtime import DocumentEventHub

router = APIRouter(tags=["events"])


@router.websocket("/ws/documents/{document_id}")
async def document_events(
    websocket: WebSocket,
    document_id: UUID,
    token: str | None = Query(default=None),
    access_token: str | None = Query(default=None),
    session: Session = Depends(get_db),
) -> None:
    hub: DocumentEventHub = websocket.app.state.event_hub
    try:
        document = session.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found.")
        actor = AccessGate(session).resolve(
            document,
            user=user_from_token(access_token, session),
            token=token,
        )
        actor.require(Capability.VIEW)
    except SigningError as exc:
        logger.info("Rejected socket for document %s: %s", document_id, exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()

    await hub.join(document_id, websocket)
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        hub.leave(document_id, websocket)
