from fastapi import APIRouter, Response, status

from marketplace.api.dependencies import SessionDep
from marketplace.core.enums import OrderEventType
from marketplace.schemas.events import OrderEventCreate, OrderEventResponse
from marketplace.services.order_event_processor import OrderEventProcessor

router = APIRouter()


@router.post("/events", response_model=OrderEventResponse)
async def process_order_event(
    event_data: OrderEventCreate, session: SessionDep, response: Response
) -> OrderEventResponse:
    async with session.begin():
        processor = OrderEventProcessor(session)
        result = await processor.process_event(event_data)

    is_new = event_data.event_type == OrderEventType.PLACED and result.created > 0
    response.status_code = status.HTTP_201_CREATED if is_new else status.HTTP_200_OK
    return result
