from app.models.automation import AutomationExecution, AutomationRule
from app.models.rfq import RFQ
from app.models.order import MarketplaceOrder
from app.models.item import Item
from app.models.dispute import Dispute, DisputeEvent, DisputeMessage
from app.models.trust import TrustScore
from app.models.sla import SLARecord
from app.models.notification import SellerNotification
