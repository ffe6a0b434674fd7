"""
Админ-панель для управления данными (SQLAdmin, синхронный engine)
"""
import logging

from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request

from salescrm.core.config import Settings
from salescrm.database.models import Activity, Client, ClientStageHistory, Service, User

logger = logging.getLogger(__name__)


class AdminAuth(AuthenticationBackend):
    """
    Аутентификация для админ-панели (/admin).
    Логин из настроек: ADMIN_PANEL_USERNAME, ADMIN_PANEL_PASSWORD.
    """

    def __init__(self, settings: Settings):
        super().__init__(secret_key=settings.secret_key)
        self.username = settings.admin_panel_username.strip()
        self.password = settings.admin_panel_password.strip()

    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = (form.get("username") or "").strip()
        password = (form.get("password") or "").strip()

        if username == self.username and password == self.password:
            request.session.update({"admin": "authenticated"})
            return True

        logger.warning("[ADMIN] Failed login for %r", username)
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return request.session.get("admin") == "authenticated"


class ClientAdmin(ModelView, model=Client):
    name = "Client"
    name_plural = "Clients"
    icon = "fa-solid fa-briefcase"

    column_list = [
        Client.company_name, Client.contact_person, Client.stage, Client.status,
        Client.value, Client.priority, Client.country, Client.updated_at,
    ]
    column_searchable_list = [Client.company_name, Client.contact_person, Client.email]
    column_sortable_list = [Client.company_name, Client.stage, Client.value, Client.updated_at]
    # стадию меняем только через API, чтобы велась история стадий
    form_excluded_columns = [Client.stage, Client.stage_history, Client.activities]

    can_create = False
    can_edit = True
    can_delete = True


class ServiceAdmin(ModelView, model=Service):
    name = "Service"
    name_plural = "Services"
    icon = "fa-solid fa-layer-group"

    column_list = [Service.name, Service.created_at]
    form_columns = [Service.name]


class UserAdmin(ModelView, model=User):
    """Ответственные менеджеры"""
    name = "Responsible person"
    name_plural = "Responsible persons"
    icon = "fa-solid fa-user"

    column_list = [User.name, User.created_at]
    form_columns = [User.name]
    can_delete = False


class ActivityAdmin(ModelView, model=Activity):
    name = "Activity"
    name_plural = "Activities"
    icon = "fa-solid fa-list"

    column_list = [Activity.client, Activity.action, Activity.user, Activity.created_at]
    can_create = False
    can_edit = False


class StageHistoryAdmin(ModelView, model=ClientStageHistory):
    name = "Stage history"
    name_plural = "Stage history"
    icon = "fa-solid fa-clock-rotate-left"

    column_list = [
        ClientStageHistory.client, ClientStageHistory.stage, ClientStageHistory.entered_at,
        ClientStageHistory.exited_at, ClientStageHistory.duration_seconds,
    ]
    column_sortable_list = [ClientStageHistory.entered_at]
    can_create = False
    can_edit = False
    can_delete = False


def setup_admin(app, engine, settings: Settings) -> Admin:
    """Подключить /admin к приложению (engine - синхронный)."""
    logger.info("[ADMIN] Initializing admin panel (%s)", engine.url.get_backend_name())
    admin = Admin(
        app=app,
        engine=engine,
        title=f"{settings.app_name} - Admin",
        base_url="/admin",
        authentication_backend=AdminAuth(settings),
    )
    admin.add_view(ClientAdmin)
    admin.add_view(ServiceAdmin)
    admin.add_view(UserAdmin)
    admin.add_view(ActivityAdmin)
    admin.add_view(StageHistoryAdmin)
    logger.info("[ADMIN] Admin panel mounted at /admin")
    return admin
