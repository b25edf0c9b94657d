"""Revenue Cloud catalog (7 phases)."""

from ..models.external_id import ExternalIdSpec
from ..models.graph import (
    ObjectRole,
    PhaseDefinition,
    PhaseEntry,
    PhaseGraph,
    Relationship,
)

MASTER = ObjectRole.MASTER
SLAVE = ObjectRole.SLAVE
STANDALONE = ObjectRole.STANDALONE

TRANSACTIONAL_OBJECTS = [
    "Account",
    "Order",
    "OrderItem",
    "Opportunity",
    "Quote",
    "Contract",
    "Asset",
]

SKU = "Product2.StockKeepingUnit"

# First pass of a two-pass object; a later occurrence in the phase sets its real status
DRAFT = {"Status": "Draft"}


def _entry(object_type: str, external_id: str = "Code", role: ObjectRole = MASTER, **kwargs) -> PhaseEntry:
    return PhaseEntry(
        object_type=object_type,
        external_id=ExternalIdSpec.parse(external_id),
        role=role,
        **kwargs,
    )


PHASES = [
    PhaseDefinition(1, "Foundation Objects", [
        _entry("CurrencyType", "IsoCode"),
        _entry("UnitOfMeasureClass", overrides=DRAFT, label="draft"),
        _entry("UnitOfMeasure"),
        _entry("UnitOfMeasureClass", overrides={"Status": "Active"}, label="active"),
        _entry("AttributeCategory"),
        _entry("AttributePicklist"),
        _entry("AttributePicklistValue"),
        _entry("AttributeDefinition"),
        _entry("AttributeCategoryAttribute", "AttributeCategory.Code;AttributeDefinition.Code", STANDALONE),
        _entry("ProductClassification"),
        _entry("ProductClassificationAttr", "ProductClassification.Code;AttributeDefinition.Code", STANDALONE),
        _entry("LegalEntity"),
        _entry("PaymentTerm", insert_only=True, overrides=DRAFT, label="draft"),
        _entry("PaymentTermItem", "PaymentTerm.Code;Type", SLAVE),
        _entry("PaymentTerm", label="final"),
        _entry("TaxEngineProvider"),
        _entry("TaxEngine"),
        _entry("TaxPolicy", insert_only=True, overrides=DRAFT, label="draft"),
        _entry("TaxTreatment", "Code", STANDALONE, insert_only=True),
        _entry("TaxPolicy", label="final"),
        _entry("BillingPolicy", insert_only=True, overrides=DRAFT, label="draft"),
        _entry("BillingTreatment", "Code", STANDALONE, insert_only=True, overrides=DRAFT, label="draft"),
        _entry("BillingTreatmentItem", "BillingTreatment.Code;Name", SLAVE, insert_only=True),
        _entry("BillingTreatment", "Code", STANDALONE, label="final"),
        _entry("BillingPolicy", label="final"),
        _entry("ProductSpecificationType"),
        _entry("ProductSpecificationRecType"),
    ]),
    PhaseDefinition(2, "Product Core Objects", [
        _entry("Product2", "StockKeepingUnit", optional=True),
        _entry("ProductAttributeDefinition", f"{SKU};AttributeDefinition.Code", SLAVE),
        _entry("AttrPicklistExcludedValue", "Attribute.Code;PicklistValue.Code", SLAVE),
        _entry("Product2DataTranslation", f"{SKU};Language", SLAVE),
    ]),
    PhaseDefinition(3, "Pricing and Selling Models", [
        _entry("CostBook"),
        _entry("CostBookEntry", f"CostBook.Code;{SKU}", SLAVE),
        _entry("Pricebook2", "Name"),
        _entry("ProrationPolicy", "Code", insert_only=True),
        _entry("ProductSellingModel", "Name"),
        _entry("ProductSellingModelOption", f"ProductSellingModel.Name;{SKU}", SLAVE),
        _entry("PricebookEntry", f"ProductSellingModel.Name;{SKU};Pricebook2.Name", SLAVE),
    ]),
    PhaseDefinition(4, "Catalog Structure", [
        _entry("ProductCatalog"),
        _entry("ProductCategory"),
        _entry("ProductCategoryDataTranslation", "ProductCategory.Code;Language", SLAVE),
        _entry("ProductCategoryProduct", f"ProductCategory.Code;{SKU}", SLAVE),
    ]),
    PhaseDefinition(5, "Product Components and Relationships", [
        _entry("ProductComponentGroup"),
        _entry("ProductComponentGrpOverride", f"ProductComponentGroup.Code;{SKU}", SLAVE),
        _entry(
            "ProductRelatedComponent",
            "ParentProduct.StockKeepingUnit;ProductComponentGroup.Code;ProductRelationshipType.Name",
        ),
        _entry(
            "ProductRelComponentOverride",
            "ProductRelatedComponent.ParentProduct.StockKeepingUnit;"
            "ProductRelatedComponent.ProductComponentGroup.Code;"
            "ProductRelatedComponent.ProductRelationshipType.Name",
            SLAVE,
        ),
    ]),
    PhaseDefinition(6, "Pricing Rules and Adjustments", [
        _entry("PriceAdjustmentSchedule"),
        _entry("PriceAdjustmentTier", f"PriceAdjustmentSchedule.Code;{SKU};TierNumber", SLAVE),
        _entry(
            "BundleBasedAdjustment",
            f"PriceAdjustmentSchedule.Code;ParentProduct.StockKeepingUnit;{SKU}",
            SLAVE,
        ),
        _entry("AttributeBasedAdjRule"),
        _entry(
            "AttributeAdjustmentCondition",
            f"AttributeBasedAdjRule.Code;AttributeDefinition.Code;{SKU}",
            SLAVE,
        ),
        _entry(
            "AttributeBasedAdjustment",
            f"AttributeBasedAdjRule.Code;PriceAdjustmentSchedule.Code;{SKU}",
            SLAVE,
        ),
    ]),
    PhaseDefinition(7, "Configuration and Fulfillment", [
        _entry("ProductConfigurationFlow", "Code", insert_only=True),
        _entry("ProductConfigFlowAssignment", f"ProductConfigurationFlow.Code;{SKU}", SLAVE),
        _entry("ProductFulfillmentDecompRule"),
        _entry("ValTfrmGrp"),
        _entry("ValTfrm", "ValTfrmGrp.Code;Name", STANDALONE),
        _entry("ProductDecompEnrichmentRule", "Code", STANDALONE),
        _entry("ProdtDecompEnrchVarMap", "ProductDecompEnrichmentRule.Code;VariableName", SLAVE),
        _entry("FulfillmentStepDefinitionGroup"),
        _entry("OmniUiCardConfig", "DeveloperName"),
        _entry("OmniIntegrationProcConfig", "DeveloperName"),
        _entry("IntegrationProviderDef"),
        _entry("FulfillmentStepDefinition"),
        _entry(
            "FulfillmentStepDependencyDef",
            "FulfillmentStepDefinition.Code;DependentStepDefinition.Code",
            SLAVE,
        ),
        _entry("FulfillmentWorkspace"),
        _entry(
            "FulfillmentWorkspaceItem",
            "FulfillmentStepDefinitionGroup.Code;FulfillmentWorkspace.Code;StepDefinition.Code",
            SLAVE,
        ),
        _entry("ProductFulfillmentScenario"),
    ]),
]

RELATIONSHIPS = [
    Relationship("PaymentTerm", "PaymentTermItem", "PaymentTermId", 1),
    Relationship("BillingTreatment", "BillingTreatmentItem", "BillingTreatmentId", 1),
    Relationship("Product2", "ProductAttributeDefinition", "Product2Id", 2),
    Relationship("ProductAttributeDefinition", "AttrPicklistExcludedValue", "ProductAttributeDefinitionId", 2),
    Relationship("Product2", "Product2DataTranslation", "ParentId", 2),
    Relationship("CostBook", "CostBookEntry", "CostBookId", 3),
    Relationship("ProductSellingModel", "ProductSellingModelOption", "ProductSellingModelId", 3),
    Relationship("Pricebook2", "PricebookEntry", "Pricebook2Id", 3),
    Relationship("ProductCategory", "ProductCategoryDataTranslation", "ParentId", 4),
    Relationship("ProductCategory", "ProductCategoryProduct", "ProductCategoryId", 4),
    Relationship("ProductComponentGroup", "ProductComponentGrpOverride", "ProductComponentGroupId", 5),
    Relationship(
        "ProductRelatedComponent", "ProductRelComponentOverride", "ProductRelatedComponentId", 5
    ),
    Relationship("PriceAdjustmentSchedule", "PriceAdjustmentTier", "PriceAdjustmentScheduleId", 6),
    Relationship("PriceAdjustmentSchedule", "BundleBasedAdjustment", "PriceAdjustmentScheduleId", 6),
    Relationship("AttributeBasedAdjRule", "AttributeAdjustmentCondition", "AttributeBasedAdjRuleId", 6),
    Relationship("AttributeBasedAdjRule", "AttributeBasedAdjustment", "AttributeBasedAdjRuleId", 6),
    Relationship(
        "ProductConfigurationFlow", "ProductConfigFlowAssignment", "ProductConfigurationFlowId", 7
    ),
    Relationship(
        "ProductDecompEnrichmentRule", "ProdtDecompEnrchVarMap", "ProductDecompEnrichmentRuleId", 7
    ),
    Relationship(
        "FulfillmentStepDefinition", "FulfillmentStepDependencyDef", "FulfillmentStepDefinitionId", 7
    ),
    Relationship("FulfillmentWorkspace", "FulfillmentWorkspaceItem", "FulfillmentWorkspaceId", 7),
]


def build_graph() -> PhaseGraph:
    return PhaseGraph(
        name="rca",
        phases=PHASES,
        relationships=RELATIONSHIPS,
        guarded_objects=TRANSACTIONAL_OBJECTS,
        default_excluded=TRANSACTIONAL_OBJECTS + ["Product2"],
    )
