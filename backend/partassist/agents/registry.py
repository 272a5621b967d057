from typing import Dict

from partassist.agents.base import DomainHandler, check_registry
from partassist.agents.compatibility.agent import CompatibilityHandler
from partassist.agents.general.agent import GeneralQuestionHandler, OutOfScopeHandler
from partassist.agents.installation.agent import InstallationHandler
from partassist.agents.order.agent import OrderSupportHandler
from partassist.agents.product.agent import ProductSearchHandler
from partassist.agents.troubleshooting.agent import TroubleshootingHandler
from partassist.core.models import IntentName
from partassist.llm.client import ResilientCompletionClient
from partassist.storage.catalog import ProductCatalog

HANDLER_REGISTRY = {
    IntentName.PRODUCT_SEARCH: ProductSearchHandler,
    IntentName.COMPATIBILITY_CHECK: CompatibilityHandler,
    IntentName.TROUBLESHOOTING: TroubleshootingHandler,
    IntentName.INSTALLATION_HELP: InstallationHandler,
    IntentName.ORDER_SUPPORT: OrderSupportHandler,
    IntentName.GENERAL_QUESTION: GeneralQuestionHandler,
    IntentName.OUT_OF_SCOPE: OutOfScopeHandler,
}


def build_handlers(client: ResilientCompletionClient, catalog: ProductCatalog) -> Dict[IntentName, DomainHandler]:
    handlers = {intent: handler_cls(client, catalog) for intent, handler_cls in HANDLER_REGISTRY.items()}
    check_registry(handlers)
    return handlers
