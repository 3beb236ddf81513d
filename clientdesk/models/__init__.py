from clientdesk.models.user import User
from clientdesk.models.client import Client
from clientdesk.models.invoice import Invoice, InvoicePayment
from clientdesk.models.sales import Sale
