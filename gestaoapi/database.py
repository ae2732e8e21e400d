import datetime

import databases
import sqlalchemy
from gestaoapi.config import config

metadata = sqlalchemy.MetaData()


def utcnow() -> datetime.datetime:
    # naive UTC, the form the DateTime columns round-trip in
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


user_table = sqlalchemy.Table(
    "user",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String(128), nullable=False),
    sqlalchemy.Column("email", sqlalchemy.String(256), unique=True, nullable=False),
    sqlalchemy.Column("password_hash", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("role", sqlalchemy.String(16), nullable=False, default="VIEWER"),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="ACTIVE"),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=utcnow),
)

form_table = sqlalchemy.Table(
    "form",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("title", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="DRAFT"),
    sqlalchemy.Column("created_by", sqlalchemy.ForeignKey("user.id"), nullable=False),
    sqlalchemy.Column("directorate", sqlalchemy.String(16), nullable=False),
    sqlalchemy.Column("allowed_directorates", sqlalchemy.JSON, nullable=True),  # ["DTI", ...] or ["ALL"]
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=utcnow),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, default=utcnow),
)

form_section_table = sqlalchemy.Table(
    "form_section",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False, index=True),
    sqlalchemy.Column("title", sqlalchemy.String(256), nullable=False, default=""),
    sqlalchemy.Column("description", sqlalchemy.Text),
    sqlalchemy.Column("order", sqlalchemy.Integer, default=0),
    sqlalchemy.Column("position", sqlalchemy.Integer, default=0),  # index in the last saved payload
)

form_field_table = sqlalchemy.Table(
    "form_field",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False, index=True),
    sqlalchemy.Column("section_id", sqlalchemy.Integer, nullable=True),
    sqlalchemy.Column("type", sqlalchemy.String(32), nullable=False),
    sqlalchemy.Column("label", sqlalchemy.String(512), nullable=False),
    sqlalchemy.Column("help_text", sqlalchemy.Text),
    sqlalchemy.Column("required", sqlalchemy.Boolean, default=False),
    sqlalchemy.Column("order", sqlalchemy.Integer, default=0),
    sqlalchemy.Column("position", sqlalchemy.Integer, default=0),
    sqlalchemy.Column("config", sqlalchemy.JSON, nullable=True),
)

form_response_table = sqlalchemy.Table(
    "form_response",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("form.id"), nullable=False, index=True),
    sqlalchemy.Column("user_id", sqlalchemy.ForeignKey("user.id"), nullable=False),
    sqlalchemy.Column("user_name", sqlalchemy.String(128), nullable=False, default=""),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="DRAFT"),
    sqlalchemy.Column("submitted_at", sqlalchemy.DateTime, nullable=True),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=utcnow),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime, default=utcnow),
    sqlalchemy.UniqueConstraint(
        "form_id", "user_id", name="uq_form_response_per_user"
    ),
)

# field_id is resolved at read time, answers to removed fields are kept as orphans
form_answer_table = sqlalchemy.Table(
    "form_answer",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("response_id", sqlalchemy.ForeignKey("form_response.id"), nullable=False, index=True),
    sqlalchemy.Column("field_id", sqlalchemy.Integer, nullable=False),
    sqlalchemy.Column("value", sqlalchemy.JSON),  # str, list[str] or number
)

objective_table = sqlalchemy.Table(
    "objective",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("code", sqlalchemy.String(32), nullable=False),
    sqlalchemy.Column("title", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text, default=""),
    sqlalchemy.Column("directorate", sqlalchemy.String(16), nullable=False, index=True),
)

key_result_table = sqlalchemy.Table(
    "key_result",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("objective_id", sqlalchemy.ForeignKey("objective.id"), nullable=False),
    sqlalchemy.Column("code", sqlalchemy.String(32), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text, default=""),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="NAO_INICIADO"),
    sqlalchemy.Column("deadline", sqlalchemy.Date, nullable=True),
    sqlalchemy.Column("directorate", sqlalchemy.String(16), nullable=False, index=True),
)

initiative_table = sqlalchemy.Table(
    "initiative",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("key_result_id", sqlalchemy.ForeignKey("key_result.id"), nullable=False),
    sqlalchemy.Column("title", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("description", sqlalchemy.Text, default=""),
    sqlalchemy.Column("board_status", sqlalchemy.String(16), nullable=False, default="A_FAZER"),
    sqlalchemy.Column("location", sqlalchemy.String(16), nullable=False, default="BACKLOG"),
    sqlalchemy.Column("sprint_id", sqlalchemy.String(64), nullable=True),
    sqlalchemy.Column("directorate", sqlalchemy.String(16), nullable=False, index=True),
)

execution_control_table = sqlalchemy.Table(
    "execution_control",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("plan_program", sqlalchemy.String(256), default=""),
    sqlalchemy.Column("kr_project_initiative", sqlalchemy.String(256), default=""),
    sqlalchemy.Column("backlog_tasks", sqlalchemy.Text, default=""),
    sqlalchemy.Column("sprint_status", sqlalchemy.String(16), nullable=False, default="BACKLOG"),
    sqlalchemy.Column("sprint_tasks", sqlalchemy.Text, default=""),
    sqlalchemy.Column("progress", sqlalchemy.String(16), nullable=False, default="A_FAZER"),
    sqlalchemy.Column("directorate", sqlalchemy.String(16), nullable=False, index=True),
)


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = sqlalchemy.create_engine(config.DATABASE_URL, connect_args=connect_args)

metadata.create_all(engine)
database = databases.Database(
    config.DATABASE_URL, force_rollback=config.DB_FORCE_ROLL_BACK
)
