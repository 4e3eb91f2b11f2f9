"""
Typed intents - one pydantic model per intent tag.

The classifier's loosely typed ``data`` map and the positional arguments of
slash commands are both validated into these models before dispatch.
"""
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, BeforeValidator, Field, TypeAdapter, ValidationError, field_validator

from taskbot.errors import InvalidArgument

# where an intent came from
SOURCE_LOCAL = "local"
SOURCE_CLASSIFIER = "classifier"
SOURCE_FALLBACK = "fallback"

DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


def parse_datetime(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return text


def stringify_scalar(value: Any) -> Any:
    """Classifier replies may carry ids and amounts as JSON numbers"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return value


# user id or username
UserRef = Annotated[str, BeforeValidator(stringify_scalar)]

# field=value pairs, values kept as text
Changes = Dict[str, Annotated[str, BeforeValidator(stringify_scalar)]]


class BaseIntent(BaseModel):
    source: str = SOURCE_LOCAL
    message: Optional[str] = None  # classifier's friendly reply, if any

    @property
    def gate(self) -> str:
        """Intent tag used for the role check"""
        return self.type


# --- local / general ---

class Help(BaseIntent):
    type: Literal["help"] = "help"


class ClearHistory(BaseIntent):
    type: Literal["clear_history"] = "clear_history"


class ShowHistory(BaseIntent):
    type: Literal["show_history"] = "show_history"


class General(BaseIntent):
    type: Literal["general"] = "general"


class InvalidCommand(BaseIntent):
    """A recognised intent whose arguments did not validate"""
    type: Literal["invalid"] = "invalid"
    target: str
    reason: str

    @property
    def gate(self) -> str:
        return self.target


# --- tasks ---

class ViewTasks(BaseIntent):
    type: Literal["view_tasks", "view_daily_tasks", "view_monthly_tasks"] = "view_tasks"


class ListTasks(BaseIntent):
    type: Literal["list_tasks"] = "list_tasks"


class UpdateProgress(BaseIntent):
    type: Literal["update_progress"] = "update_progress"
    task_id: int
    percentage: int
    is_implemented: bool = False
    notes: Optional[str] = None


class MarkComplete(BaseIntent):
    type: Literal["mark_complete"] = "mark_complete"
    task_id: int


class DeleteTask(BaseIntent):
    type: Literal["delete_task"] = "delete_task"
    task_id: int


class CreateTask(BaseIntent):
    """Custom task; ``assigned_to`` is a user id or username, caller when empty"""
    type: Literal["create_task", "assign_task", "create_daily_task", "create_monthly_task"] = "create_task"
    title: str
    description: Optional[str] = None
    assigned_to: Optional[UserRef] = None


# --- orders ---

class OrderLine(BaseModel):
    item_name: str
    quantity: int
    price: float
    description: Optional[str] = None


class CreateOrder(BaseIntent):
    type: Literal["create_order"] = "create_order"
    customer_name: str = ""
    total_amount: float = 0.0
    customer_phone: Optional[str] = None
    items: List[OrderLine] = Field(default_factory=list)


class CreateOrderWithItem(BaseIntent):
    type: Literal["create_order_with_item"] = "create_order_with_item"
    customer_name: str
    total_amount: float
    item_name: str
    quantity: int
    price: float


class ViewOrders(BaseIntent):
    type: Literal["view_orders"] = "view_orders"


class UpdateOrder(BaseIntent):
    type: Literal["update_order"] = "update_order"
    order_id: int
    changes: Changes


class DeleteOrder(BaseIntent):
    type: Literal["delete_order"] = "delete_order"
    order_id: int


class AddOrderItem(BaseIntent):
    type: Literal["add_order_item"] = "add_order_item"
    order_id: int
    item_name: str
    quantity: int
    price: float
    description: Optional[str] = None


class UpdateOrderItem(BaseIntent):
    """Editable fields: item_name, quantity, price, description"""
    type: Literal["update_order_item"] = "update_order_item"
    item_id: int
    changes: Changes


class SetItemStatus(BaseIntent):
    type: Literal["set_item_status"] = "set_item_status"
    item_id: int
    status: str


class DeleteOrderItem(BaseIntent):
    type: Literal["delete_order_item"] = "delete_order_item"
    item_id: int


class ViewOrderItems(BaseIntent):
    type: Literal["view_order_items"] = "view_order_items"
    order_id: int


class ViewCalculations(BaseIntent):
    type: Literal["view_calculations"] = "view_calculations"
    order_id: int


# --- financial settings and reports ---

class SetRate(BaseIntent):
    type: Literal["set_tax_rate", "set_marketing_rate", "set_rental_rate"]
    percentage: float

    @property
    def setting_name(self) -> str:
        return self.type[len("set_"):]


class MyReport(BaseIntent):
    type: Literal["my_report"] = "my_report"


class ReportByDate(BaseIntent):
    type: Literal["report_by_date"] = "report_by_date"
    start_date: date
    end_date: date


class GenerateReport(BaseIntent):
    type: Literal["generate_report", "daily_report", "monthly_report"] = "generate_report"


# --- reminders ---

class CreateReminder(BaseIntent):
    type: Literal["create_reminder"] = "create_reminder"
    task_id: int
    reminder_type: str
    scheduled_time: datetime

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def _parse_time(cls, value):
        return parse_datetime(value)


class ViewReminders(BaseIntent):
    type: Literal["view_reminders"] = "view_reminders"
    task_id: Optional[int] = None


class MarkReminderSent(BaseIntent):
    type: Literal["mark_reminder_sent"] = "mark_reminder_sent"
    reminder_id: int


class DeleteReminder(BaseIntent):
    type: Literal["delete_reminder"] = "delete_reminder"
    reminder_id: int


class ProgressReminder(BaseIntent):
    type: Literal["daily_progress_reminder", "monthly_progress_reminder"]


# --- users ---

class AddUser(BaseIntent):
    type: Literal["add_user"] = "add_user"
    username: str
    email: str
    phone: Optional[str] = None
    role: str = "User"


class ListUsers(BaseIntent):
    type: Literal["list_users"] = "list_users"


class UserTarget(BaseIntent):
    """``user`` is a user id or username"""
    user: UserRef


class UpdateUser(UserTarget):
    type: Literal["update_user"] = "update_user"
    changes: Changes


class DeleteUser(UserTarget):
    type: Literal["delete_user"] = "delete_user"


class SetRole(UserTarget):
    type: Literal["set_role"] = "set_role"
    role: str


INTENT_MODELS = (
    Help, ClearHistory, ShowHistory, General, InvalidCommand,
    ViewTasks, ListTasks, UpdateProgress, MarkComplete, DeleteTask, CreateTask,
    CreateOrder, CreateOrderWithItem, ViewOrders, UpdateOrder, DeleteOrder,
    AddOrderItem, UpdateOrderItem, SetItemStatus, DeleteOrderItem, ViewOrderItems, ViewCalculations,
    SetRate, MyReport, ReportByDate, GenerateReport,
    CreateReminder, ViewReminders, MarkReminderSent, DeleteReminder, ProgressReminder,
    AddUser, ListUsers, UpdateUser, DeleteUser, SetRole,
)

Intent = Annotated[Union[INTENT_MODELS], Field(discriminator="type")]

intent_adapter = TypeAdapter(Intent)

INTENT_TYPES = frozenset(
    value
    for model in INTENT_MODELS
    for value in get_args(model.model_fields["type"].annotation)
)


def build_intent(intent_type: str, data: Dict[str, Any], **extra) -> BaseIntent:
    """
    Validate a tag + loosely typed field map into its intent model.

    Raises InvalidArgument naming the offending fields.
    """
    payload = {k: v for k, v in (data or {}).items() if v is not None and v != ""}
    payload.update(extra)
    payload["type"] = intent_type
    try:
        return intent_adapter.validate_python(payload)
    except ValidationError as e:
        fields = sorted({str(err["loc"][-1]) for err in e.errors() if err["loc"]})
        raise InvalidArgument(f"Invalid or missing value for: {', '.join(fields)}") from e


def from_classifier(payload: Dict[str, Any]) -> BaseIntent:
    """
    Turn a classifier JSON object into an intent.

    Unknown types become ``general``; a known type whose data does not
    validate becomes an InvalidCommand aimed at that type.
    """
    intent_type = str(payload.get("type") or "general")
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    message = payload.get("message")
    message = message if isinstance(message, str) else None

    if intent_type not in INTENT_TYPES or intent_type == "invalid":
        return General(source=SOURCE_CLASSIFIER, message=message)
    try:
        return build_intent(intent_type, data, source=SOURCE_CLASSIFIER, message=message)
    except InvalidArgument as e:
        return InvalidCommand(source=SOURCE_CLASSIFIER, target=intent_type, reason=e.message, message=message)
