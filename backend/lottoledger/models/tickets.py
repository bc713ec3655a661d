from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

# Pack status constants
PACK_STATUS_ACTIVE = "active"
PACK_STATUS_INACTIVE = "inactive"
PACK_STATUS_RETURNED = "returned"

PACK_STATUSES = (PACK_STATUS_ACTIVE, PACK_STATUS_INACTIVE, PACK_STATUS_RETURNED)

class TicketPack(db.Model):
    """
    Printed pack of lottery tickets with a bounded serial range.

    WHY: Tracks inventory depletion and the day's opening/closing serials
    independently of any box.

    INVARIANTS:
    - Accepted scans lie in [start_serial, end_serial] (numeric compare)
    - remaining_tickets = total_tickets - scanned_count, never below 0
    - last_reset_date only moves forward, one reset per calendar day

    LIFECYCLE:
    - active: accepting scans
    - inactive / returned: terminal, timestamped
    """
    __tablename__ = "ticket_packs"
    __table_args__ = (
        db.Index("ix_ticket_packs_game_store", "game_number", "store_id"),
        db.Index("ix_ticket_packs_status_store", "status", "store_id"),
        db.CheckConstraint("remaining_tickets >= 0", name="ck_ticket_packs_remaining_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    game_number = db.Column(db.String(32), nullable=False)
    game_name = db.Column(db.String(128), nullable=False)
    game_image = db.Column(db.String(512), nullable=True)

    # Serials are digit strings; leading zeros are preserved for display
    start_serial = db.Column(db.String(32), nullable=False)
    end_serial = db.Column(db.String(32), nullable=False)
    current_serial = db.Column(db.String(32), nullable=True)

    ticket_price_cents = db.Column(db.Integer, nullable=False)
    total_tickets = db.Column(db.Integer, nullable=False)
    remaining_tickets = db.Column(db.Integer, nullable=False)
    scanned_count = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PACK_STATUS_ACTIVE, index=True)

    # Daily bookkeeping
    today_open_number = db.Column(db.String(32), nullable=True)
    last_closing_number = db.Column(db.String(32), nullable=True)
    last_reset_date = db.Column(db.DateTime, nullable=True)

    activation_date = db.Column(db.DateTime, nullable=False)
    deactivation_date = db.Column(db.DateTime, nullable=True)
    return_date = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("ticket_packs", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<TicketPack id={self.id} game={self.game_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "game_number": self.game_number,
            "game_name": self.game_name,
            "game_image": self.game_image,
            "start_serial": self.start_serial,
            "end_serial": self.end_serial,
            "current_serial": self.current_serial,
            "ticket_price_cents": self.ticket_price_cents,
            "total_tickets": self.total_tickets,
            "remaining_tickets": self.remaining_tickets,
            "scanned_count": self.scanned_count,
            "status": self.status,
            "today_open_number": self.today_open_number,
            "last_closing_number": self.last_closing_number,
            "last_reset_date": to_utc_z(self.last_reset_date),
            "activation_date": to_utc_z(self.activation_date),
            "deactivation_date": to_utc_z(self.deactivation_date),
            "return_date": to_utc_z(self.return_date),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
