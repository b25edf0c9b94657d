"""Salesforce CPQ configuration catalog (11 phases)."""

from ..models.external_id import ExternalIdSpec
from ..models.graph import (
    BusinessFilter,
    ObjectRole,
    PhaseDefinition,
    PhaseEntry,
    PhaseGraph,
    Relationship,
)

MASTER = ObjectRole.MASTER
SLAVE = ObjectRole.SLAVE

# Objects that carry live transactional data and must never be migrated
TRANSACTIONAL_OBJECTS = [
    "Product2",
    "Order",
    "OrderItem",
    "Account",
    "Opportunity",
    "Quote",
    "SBQQ__Quote__c",
    "SBQQ__QuoteLine__c",
    "Contract",
    "SBQQ__Subscription__c",
    "Asset",
]

DISCOUNT_SCHEDULE = "SBQQ__DiscountSchedule__c"
LOOKUP_QUERY = "SBQQ__LookupQuery__c"


def _entry(object_type: str, external_id: str, role: ObjectRole = MASTER, **kwargs) -> PhaseEntry:
    return PhaseEntry(
        object_type=object_type,
        external_id=ExternalIdSpec.parse(external_id),
        role=role,
        **kwargs,
    )


PHASES = [
    PhaseDefinition(1, "Pricebook & Product Configuration", [
        _entry("Product2", "ProductCode", optional=True),
        _entry("Pricebook2", "Name"),
        _entry("SBQQ__ProductFeature__c", "Name"),
        _entry("SBQQ__ProductOption__c", "SBQQ__ProductCode__c"),
        _entry("SBQQ__ConfigurationAttribute__c", "SBQQ__Feature__r.Name"),
        _entry(
            "SBQQ__Dimension__c",
            "SBQQ__PriceBook__r.Name;SBQQ__Product__r.ProductCode;SBQQ__Type__c",
        ),
        _entry("SBQQ__Cost__c", "SBQQ__Product__r.ProductCode"),
        _entry("SBQQ__DiscountCategory__c", "Name"),
        _entry("SBQQ__SolutionGroup__c", "Name"),
        _entry("SBQQ__Theme__c", "Name"),
        _entry("SBQQ__CustomScript__c", "Name"),
        _entry("SBQQ__LookupData__c", "Name"),
        _entry(DISCOUNT_SCHEDULE, "Name"),
    ]),
    PhaseDefinition(2, "Product Rules", [
        _entry("SBQQ__ProductRule__c", "Name"),
        _entry("SBQQ__ErrorCondition__c", "SBQQ__Rule__r.Name;SBQQ__Index__c", SLAVE),
        _entry(LOOKUP_QUERY, "Name", SLAVE, phase_filter="SBQQ__ProductRule__c != null"),
        _entry("SBQQ__ProductAction__c", "SBQQ__Rule__r.Name;SBQQ__Product__r.ProductCode", SLAVE),
    ]),
    PhaseDefinition(3, "Configuration & Price Rules", [
        _entry(
            "SBQQ__ConfigurationRule__c",
            "SBQQ__ProductFeature__r.Name;SBQQ__ProductRule__r.Name",
        ),
        _entry("SBQQ__PriceRule__c", "Name"),
        _entry("SBQQ__PriceCondition__c", "SBQQ__Rule__r.Name;SBQQ__Index__c", SLAVE),
        _entry("SBQQ__PriceAction__c", "SBQQ__Rule__r.Name", SLAVE),
        _entry(
            LOOKUP_QUERY,
            "SBQQ__PriceRule2__r.Name",
            SLAVE,
            phase_filter="(SBQQ__PriceRule__c != null OR SBQQ__PriceRule2__c != null)",
        ),
    ]),
    PhaseDefinition(4, "Template Contents & Quote Templates", [
        _entry("SBQQ__TemplateContent__c", "Name"),
        _entry("SBQQ__QuoteTemplate__c", "Name"),
    ]),
    PhaseDefinition(5, "Template Sections & Line Columns", [
        _entry("SBQQ__TemplateSection__c", "SBQQ__Template__r.Name;SBQQ__Content__r.Name"),
        _entry("SBQQ__LineColumn__c", "SBQQ__Template__r.Name;SBQQ__Section__r.Name", SLAVE),
    ]),
    PhaseDefinition(6, "Option Constraints, Upgrade Sources & Summary Variables", [
        _entry(
            "SBQQ__OptionConstraint__c",
            "SBQQ__ConstrainedOption__r.SBQQ__ProductCode__c;SBQQ__ConfiguredSKU__r.ProductCode",
        ),
        _entry(
            "SBQQ__UpgradeSource__c",
            "SBQQ__SourceProduct__r.ProductCode;SBQQ__UpgradeProduct__r.ProductCode",
        ),
        _entry("SBQQ__SummaryVariable__c", "Name"),
    ]),
    PhaseDefinition(7, "Discount Tiers & Block Prices", [
        _entry("SBQQ__DiscountTier__c", "SBQQ__Schedule__r.Name;SBQQ__Number__c", SLAVE),
        _entry(
            "SBQQ__BlockPrice__c",
            "SBQQ__PriceBook2__r.Name;SBQQ__Product__r.ProductCode;SBQQ__LowerBound__c",
        ),
    ]),
    PhaseDefinition(8, "Quote Process", [
        _entry("SBQQ__QuoteProcess__c", "Name"),
        _entry(
            "SBQQ__ProcessInput__c",
            "SBQQ__QuoteProcess__r.Name;SBQQ__ProcessInputCondition__r.Name",
            SLAVE,
        ),
        _entry(
            "SBQQ__ProcessInputCondition__c",
            "SBQQ__ProcessInput__r.Name;SBQQ__MasterProcessInput__r.Name",
            SLAVE,
        ),
    ]),
    PhaseDefinition(9, "Custom Actions & Search Filters", [
        _entry("SBQQ__CustomAction__c", "Name"),
        _entry(
            "SBQQ__CustomActionCondition__c",
            "SBQQ__CustomAction__r.Name;SBQQ__Field__c",
            SLAVE,
        ),
        _entry("SBQQ__SearchFilter__c", "SBQQ__Action__r.Name"),
    ]),
    PhaseDefinition(10, "Import Formats", [
        _entry("SBQQ__ImportFormat__c", "Name"),
        _entry(
            "SBQQ__ImportColumn__c",
            "SBQQ__ImportFormat__r.Name;SBQQ__ColumnIndex__c",
            SLAVE,
        ),
    ]),
    PhaseDefinition(11, "Localization", [
        _entry("SBQQ__Localization__c", "Name"),
    ]),
]

RELATIONSHIPS = [
    Relationship("SBQQ__ProductRule__c", "SBQQ__ErrorCondition__c", "SBQQ__Rule__c", 2),
    Relationship("SBQQ__ProductRule__c", "SBQQ__ProductAction__c", "SBQQ__Rule__c", 2),
    Relationship("SBQQ__ProductRule__c", LOOKUP_QUERY, "SBQQ__ProductRule__c", 2),
    Relationship("SBQQ__PriceRule__c", "SBQQ__PriceCondition__c", "SBQQ__Rule__c", 3),
    Relationship("SBQQ__PriceRule__c", "SBQQ__PriceAction__c", "SBQQ__Rule__c", 3),
    Relationship(
        "SBQQ__PriceRule__c", LOOKUP_QUERY, "SBQQ__PriceRule2__c", 3,
        alternate_fields=("SBQQ__PriceRule__c",),
    ),
    Relationship("SBQQ__TemplateSection__c", "SBQQ__LineColumn__c", "SBQQ__Section__c", 5),
    Relationship(DISCOUNT_SCHEDULE, "SBQQ__DiscountTier__c", "SBQQ__Schedule__c", 7, parent_phase=1),
    Relationship("SBQQ__QuoteProcess__c", "SBQQ__ProcessInput__c", "SBQQ__QuoteProcess__c", 8),
    Relationship(
        "SBQQ__ProcessInput__c", "SBQQ__ProcessInputCondition__c", "SBQQ__ProcessInput__c", 8
    ),
    Relationship("SBQQ__CustomAction__c", "SBQQ__CustomActionCondition__c", "SBQQ__CustomAction__c", 9),
    Relationship("SBQQ__ImportFormat__c", "SBQQ__ImportColumn__c", "SBQQ__ImportFormat__c", 10),
]

BUSINESS_FILTERS = [
    BusinessFilter("Pricebook2", "IsStandard = false"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__Account__c = null"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__Order__c = null"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__OrderProduct__c = null"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__Quote__c = null"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__QuoteLine__c = null"),
    BusinessFilter(DISCOUNT_SCHEDULE, "SBQQ__Product__c = null", lifted_by="Product2"),
]


def build_graph() -> PhaseGraph:
    return PhaseGraph(
        name="cpq",
        phases=PHASES,
        relationships=RELATIONSHIPS,
        guarded_objects=TRANSACTIONAL_OBJECTS,
        default_excluded=TRANSACTIONAL_OBJECTS,
        business_filters=BUSINESS_FILTERS,
    )
