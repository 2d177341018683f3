from .warehouses import Warehouse
from .catalog import Category, Subcategory, Product, PriceHistory, FeatureDefinition, ProductFeature
from .inventory import Inventory, StockMovement
from .preferences import UserPreference
from .crm import Client, Company, Contact
from .service_catalog import ServiceCategory, Service
from .quotes import Quote, QuoteItem, QuoteEvent, QuoteComment, QuoteAccessToken
from .templates import (
    CategoryTemplate, TemplateCategory, TemplateSubcategory, TemplateFeature, TemplateImportJob,
)

__all__ = [
    'Warehouse',
    'Category', 'Subcategory', 'Product', 'PriceHistory',
    'FeatureDefinition', 'ProductFeature',
    'Inventory', 'StockMovement',
    'UserPreference',
    'Client', 'Company', 'Contact',
    'ServiceCategory', 'Service',
    'Quote', 'QuoteItem', 'QuoteEvent', 'QuoteComment', 'QuoteAccessToken',
    'CategoryTemplate', 'TemplateCategory', 'TemplateSubcategory', 'TemplateFeature', 'TemplateImportJob',
]
