from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Box(db.Model):
    """
    Physical ticket dispenser slot.

    WHY: Daily sales are read off the serial counters of each box.
    opening_number is the day's baseline, closing_number advances with
    every scan or manual entry, and sales are the delta times unit cost.

    ROLLOVER:
    - last_updated is compared to "now" (store timezone) before every
      mutation; a new calendar day resets the counters first
    - last_reset_at records the day a reset was applied so a day is
      never reset twice

    DESIGN: Boxes are never deleted, only deactivated.
    """
    __tablename__ = "boxes"
    __table_args__ = (
        db.UniqueConstraint("store_id", "box_number", name="uq_boxes_store_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    box_number = db.Column(db.String(32), nullable=False)
    game_number = db.Column(db.String(32), nullable=False)
    ticket_serial = db.Column(db.String(64), nullable=False)  # Pack serial prefix

    opening_number = db.Column(db.Integer, nullable=False, default=0)
    closing_number = db.Column(db.Integer, nullable=False, default=0)
    ticket_cost_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    last_updated = db.Column(db.DateTime, nullable=False, index=True)
    last_reset_at = db.Column(db.DateTime, nullable=True)

    # Display settings for the active boxes board
    show_sequence = db.Column(db.Boolean, nullable=False, default=True)
    show_box_number = db.Column(db.Boolean, nullable=False, default=True)
    show_game_number = db.Column(db.Boolean, nullable=False, default=True)
    show_ticket_serial = db.Column(db.Boolean, nullable=False, default=True)
    show_opening_number = db.Column(db.Boolean, nullable=False, default=True)
    show_closing_number = db.Column(db.Boolean, nullable=False, default=True)
    show_sales = db.Column(db.Boolean, nullable=False, default=True)

    # Latest device metrics (history in box_metric_samples)
    temperature = db.Column(db.Float, nullable=True)
    battery_level = db.Column(db.Float, nullable=True)
    last_active = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("boxes", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    DISPLAY_FIELDS = (
        "show_sequence",
        "show_box_number",
        "show_game_number",
        "show_ticket_serial",
        "show_opening_number",
        "show_closing_number",
        "show_sales",
    )

    def __repr__(self) -> str:
        return f"<Box id={self.id} number={self.box_number!r} open={self.opening_number} close={self.closing_number}>"

    def display_settings(self) -> dict:
        return {field: getattr(self, field) for field in self.DISPLAY_FIELDS}

    def to_dict(self) -> dict:
        from ..services.box_service import calculate_sales

        return {
            "id": self.id,
            "store_id": self.store_id,
            "box_number": self.box_number,
            "game_number": self.game_number,
            "ticket_serial": self.ticket_serial,
            "opening_number": self.opening_number,
            "closing_number": self.closing_number,
            "ticket_cost_cents": self.ticket_cost_cents,
            "sales_cents": calculate_sales(self),
            "is_active": self.is_active,
            "last_updated": to_utc_z(self.last_updated),
            "last_reset_at": to_utc_z(self.last_reset_at),
            "display_settings": self.display_settings(),
            "metrics": {
                "temperature": self.temperature,
                "battery_level": self.battery_level,
                "last_active": to_utc_z(self.last_active),
            },
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }

class BoxMetricSample(db.Model):
    """
    Device metric reading reported by a box.

    Append-only history; the latest values are mirrored onto the box.
    """
    __tablename__ = "box_metric_samples"
    __table_args__ = (
        db.Index("ix_box_metric_samples_box_recorded", "box_id", "recorded_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    box_id = db.Column(db.Integer, db.ForeignKey("boxes.id"), nullable=False, index=True)
    temperature = db.Column(db.Float, nullable=True)
    battery_level = db.Column(db.Float, nullable=True)
    recorded_at = db.Column(db.DateTime, nullable=False)

    box = db.relationship("Box", backref=db.backref("metric_samples", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "box_id": self.box_id,
            "temperature": self.temperature,
            "battery_level": self.battery_level,
            "recorded_at": to_utc_z(self.recorded_at),
        }
