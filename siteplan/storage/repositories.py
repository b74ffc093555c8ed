from typing import List

from sqlalchemy.orm import Session

from siteplan.models.entities import Activity, Equipment, Predecessor, Workforce
from siteplan.storage.database import ActivityModel, EquipmentModel, WorkforceModel


class ActivityRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_by_project(self, project_id: str) -> List[Activity]:
        models = (
            self.db.query(ActivityModel)
            .filter(ActivityModel.project_id == project_id)
            .order_by(ActivityModel.position)
            .all()
        )
        return [self._model_to_activity(m) for m in models]

    def save(self, project_id: str, activity: Activity, position: int = 0) -> None:
        predecessors = [
            {"activity_id": p.activity_id, "dependency_type": p.dependency_type.value, "lag_days": p.lag_days}
            for p in activity.predecessors
        ]
        existing = (
            self.db.query(ActivityModel)
            .filter(ActivityModel.project_id == project_id, ActivityModel.id == activity.id)
            .first()
        )
        if existing:
            existing.position = position
            existing.name = activity.name
            existing.primary_trade = activity.primary_trade
            existing.planned_start = activity.planned_start
            existing.duration_days = activity.duration_days
            existing.planned_total_cost = activity.planned_total_cost
            existing.priority = activity.priority.value
            existing.predecessors = predecessors
            existing.equipment_types = list(activity.equipment_types)
            existing.kind = activity.kind
            existing.weather_sensitive = activity.weather_sensitive
        else:
            model = ActivityModel(
                project_id=project_id,
                id=activity.id,
                position=position,
                name=activity.name,
                primary_trade=activity.primary_trade,
                planned_start=activity.planned_start,
                duration_days=activity.duration_days,
                planned_total_cost=activity.planned_total_cost,
                priority=activity.priority.value,
                predecessors=predecessors,
                equipment_types=list(activity.equipment_types),
                kind=activity.kind,
                weather_sensitive=activity.weather_sensitive,
            )
            self.db.add(model)
        self.db.commit()

    @staticmethod
    def _model_to_activity(model: ActivityModel) -> Activity:
        return Activity(
            id=model.id,
            name=model.name,
            primary_trade=model.primary_trade,
            planned_start=model.planned_start,
            duration_days=model.duration_days,
            planned_total_cost=model.planned_total_cost or 0.0,
            priority=model.priority or "normal",
            predecessors=[Predecessor(**p) for p in (model.predecessors or [])],
            equipment_types=model.equipment_types or [],
            kind=model.kind,
            weather_sensitive=bool(model.weather_sensitive),
        )


class WorkforceRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_by_project(self, project_id: str) -> List[Workforce]:
        models = self.db.query(WorkforceModel).filter(WorkforceModel.project_id == project_id).all()
        return [self._model_to_workforce(m) for m in models]

    def save(self, project_id: str, worker: Workforce) -> None:
        self.db.merge(
            WorkforceModel(
                project_id=project_id,
                id=worker.id,
                trade=worker.trade,
                hourly_rate=worker.hourly_rate,
                daily_hours=worker.daily_hours,
                productivity_factor=worker.productivity_factor,
                available_from=worker.available_from,
                available_until=worker.available_until,
            )
        )
        self.db.commit()

    @staticmethod
    def _model_to_workforce(model: WorkforceModel) -> Workforce:
        return Workforce(
            id=model.id,
            trade=model.trade,
            hourly_rate=model.hourly_rate,
            daily_hours=model.daily_hours,
            productivity_factor=model.productivity_factor,
            available_from=model.available_from,
            available_until=model.available_until,
        )


class EquipmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_by_project(self, project_id: str) -> List[Equipment]:
        models = self.db.query(EquipmentModel).filter(EquipmentModel.project_id == project_id).all()
        return [self._model_to_equipment(m) for m in models]

    def save(self, project_id: str, equipment: Equipment) -> None:
        self.db.merge(
            EquipmentModel(
                project_id=project_id,
                id=equipment.id,
                type=equipment.type,
                daily_rental_cost=equipment.daily_rental_cost,
                units=equipment.units,
                productivity_factor=equipment.productivity_factor,
                available_from=equipment.available_from,
                available_until=equipment.available_until,
            )
        )
        self.db.commit()

    @staticmethod
    def _model_to_equipment(model: EquipmentModel) -> Equipment:
        return Equipment(
            id=model.id,
            type=model.type,
            daily_rental_cost=model.daily_rental_cost,
            units=model.units,
            productivity_factor=model.productivity_factor,
            available_from=model.available_from,
            available_until=model.available_until,
        )
