from fastapi import Depends

from database import get_db
from utils.order_store import MongoOrderStore
from utils.order_workflow import OrderWorkflow
from utils.role_cache import MongoKeyValueCache
from utils.role_resolver import RoleResolver
from utils.route_guard import RouteGuard
from utils.user_directory import MongoUserDirectory

# -----------------------------
# COLLABORATORS
# -----------------------------

def get_client_cache(db=Depends(get_db)):
    return MongoKeyValueCache(db)


def get_user_directory(db=Depends(get_db)):
    return MongoUserDirectory(db)


def get_order_store(db=Depends(get_db)):
    return MongoOrderStore(db)

# -----------------------------
# CORE
# -----------------------------

def get_role_resolver(
    cache=Depends(get_client_cache),
    directory=Depends(get_user_directory),
):
    return RoleResolver(cache, directory)


def get_route_guard(resolver=Depends(get_role_resolver)):
    return RouteGuard(resolver)


def get_order_workflow(store=Depends(get_order_store)):
    return OrderWorkflow(store)
