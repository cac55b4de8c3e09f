from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select

from school_api.core.errors import BusinessRuleError, NotFoundError, ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import Class, Event, EventRSVP, User, utcnow
from school_api.schemas.enums import EventType, NotificationType, UserRole
from school_api.schemas.event import EventCreateRequest, EventUpdateRequest, RSVPRequest
from school_api.services.base_service import BaseService
from school_api.services.notification_service import NotificationService


class EventService(BaseService):

    async def create_event(self, data: EventCreateRequest) -> Event:
        school_id = await self.target_school(data.school_id)
        if data.class_id is not None:
            await self.ensure_in_tenant(Class, data.class_id, school_id, "Class")

        event = Event(
            school_id=school_id,
            title=data.title,
            description=data.description,
            location=data.location,
            start_time=data.start_time,
            end_time=data.end_time,
            event_type=data.event_type.value,
            class_id=data.class_id,
            rsvp_required=data.rsvp_required,
            created_by_id=self.actor_id
        )
        self.db.add(event)
        await self.commit(event)
        self.log_write("created", "Event", event.id, school_id)

        notifications = NotificationService(self.db, self.identity)
        if event.class_id is not None:
            targets = await notifications.parents_of_class(event.class_id)
        else:
            targets = await notifications.parents_of_school(school_id)
        await notifications.notify(
            targets,
            f"New event: {event.title}",
            f"{event.title} starts on {event.start_time:%Y-%m-%d %H:%M}"
            + (f" at {event.location}." if event.location else "."),
            category=NotificationType.EVENT,
            metadata={"event_id": event.id, "rsvp_required": event.rsvp_required},
            school_id=school_id,
            action_url=f"/events/{event.id}"
        )
        return event

    def _audience(self, stmt):
        # Parents only see school-wide events and those of their children's classes
        if self.role == UserRole.PARENT:
            classes = self.predicate(ResourceKind.CLASS).clause(Class)
            stmt = stmt.where(or_(Event.class_id.is_(None), Event.class_id.in_(select(Class.id).where(classes))))
        return stmt

    async def list_events(
        self,
        pagination: Pagination,
        event_type: Optional[EventType] = None,
        class_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        school_id: Optional[int] = None
    ):
        stmt = self._audience(select(Event))
        if event_type is not None:
            stmt = stmt.where(Event.event_type == event_type.value)
        if class_id is not None:
            stmt = stmt.where(Event.class_id == class_id)
        if start_date is not None:
            stmt = stmt.where(Event.end_time >= start_date)
        if end_date is not None:
            stmt = stmt.where(Event.start_time <= end_date)
        return await self.list_page(
            stmt, Event, pagination, ResourceKind.SCHOOL, school_id, order_by=[Event.start_time]
        )

    async def upcoming(self, limit: int = 5, school_id: Optional[int] = None) -> List[Event]:
        stmt = self.scoped(
            self._audience(select(Event).where(Event.start_time >= utcnow())),
            Event, ResourceKind.SCHOOL, school_id
        )
        result = await self.db.execute(stmt.order_by(Event.start_time).limit(limit))
        return list(result.scalars().all())

    async def get_event(self, event_id: int) -> Event:
        stmt = self.scoped(self._audience(select(Event).where(Event.id == event_id)), Event)
        event = (await self.db.execute(stmt)).scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def rsvp_counts(self, event_id: int) -> Dict[str, int]:
        rows = await self.db.execute(
            select(EventRSVP.response, func.count()).where(EventRSVP.event_id == event_id).group_by(EventRSVP.response)
        )
        return {response: total for response, total in rows.all()}

    async def update_event(self, event_id: int, data: EventUpdateRequest) -> Event:
        event = await self.get_event(event_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        start = updates.get("start_time", event.start_time)
        end = updates.get("end_time", event.end_time)
        if end <= start:
            raise ValidationError(
                "Invalid event time",
                errors=[{"field": "end_time", "message": "end_time must be after start_time"}]
            )
        self.apply_updates(event, updates)
        await self.commit(event)
        self.log_write("updated", "Event", event.id, event.school_id)
        return event

    async def delete_event(self, event_id: int) -> None:
        event = await self.get_event(event_id)
        await self.delete(event)
        self.log_write("deleted", "Event", event_id, event.school_id)

    async def rsvp(self, event_id: int, data: RSVPRequest) -> EventRSVP:
        """Record or change the caller's answer; the organiser is told about it"""
        event = await self.get_event(event_id)
        if not event.rsvp_required:
            raise BusinessRuleError("This event does not take RSVPs")
        if event.end_time < utcnow():
            raise BusinessRuleError("This event has already ended")

        stmt = select(EventRSVP).where(EventRSVP.event_id == event.id, EventRSVP.user_id == self.actor_id)
        answer = (await self.db.execute(stmt)).scalar_one_or_none()
        if answer is None:
            answer = EventRSVP(event_id=event.id, user_id=self.actor_id)
            self.db.add(answer)
        answer.response = data.response.value
        answer.responded_at = utcnow()
        await self.commit(answer)
        self.log_write(f"answered {answer.response} for event {event.id}", "RSVP", answer.id, event.school_id)

        if event.created_by_id is not None and event.created_by_id != self.actor_id:
            responder = await self.db.get(User, self.actor_id)
            name = responder.full_name if responder is not None else f"User {self.actor_id}"
            await NotificationService(self.db, self.identity).notify(
                [event.created_by_id],
                f"RSVP for {event.title}",
                f"{name} responded {answer.response}.",
                category=NotificationType.EVENT,
                metadata={"event_id": event.id, "response": answer.response},
                school_id=event.school_id
            )
        return answer

    async def list_rsvps(self, event_id: int) -> List[EventRSVP]:
        event = await self.get_event(event_id)
        result = await self.db.execute(
            select(EventRSVP).where(EventRSVP.event_id == event.id).order_by(EventRSVP.responded_at)
        )
        return list(result.scalars().all())
