"""Power Platform solution package: Workflows/*.json plus XML manifests.

Layout of the archive:

    solution.xml
    customizations.xml
    [Content_Types].xml
    Workflows/<sanitized name>-<WORKFLOW GUID>.json

Element names, numeric flags and the two-address publisher block are what
the solution importer expects; they are fixed, not computed.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from pathlib import Path
from xml.sax.saxutils import escape

from ..workflow.schema import FlowDefinition
from .archive import CONTENT_TYPES_XML, export_entries, zip_entries
from .metadata import PublisherInfo, SolutionInfo, connector_display_name

logger = logging.getLogger(__name__)

WORKFLOWS_DIR = "Workflows"
FALLBACK_FLOW_NAME = "flow"
WORKFLOW_COMPONENT_TYPE = 29
LANGUAGE_CODE = 1033

_XML_ENTITIES = {"'": "&apos;", '"': "&quot;"}

_ADDRESS_FIELDS = """\
          <City xsi:nil="true"></City>
          <County xsi:nil="true"></County>
          <Country xsi:nil="true"></Country>
          <Fax xsi:nil="true"></Fax>
          <FreightTermsCode xsi:nil="true"></FreightTermsCode>
          <ImportSequenceNumber xsi:nil="true"></ImportSequenceNumber>
          <Latitude xsi:nil="true"></Latitude>
          <Line1 xsi:nil="true"></Line1>
          <Line2 xsi:nil="true"></Line2>
          <Line3 xsi:nil="true"></Line3>
          <Longitude xsi:nil="true"></Longitude>
          <Name xsi:nil="true"></Name>
          <PostalCode xsi:nil="true"></PostalCode>
          <PostOfficeBox xsi:nil="true"></PostOfficeBox>
          <PrimaryContactName xsi:nil="true"></PrimaryContactName>
          <ShippingMethodCode>1</ShippingMethodCode>
          <StateOrProvince xsi:nil="true"></StateOrProvince>
          <Telephone1 xsi:nil="true"></Telephone1>
          <Telephone2 xsi:nil="true"></Telephone2>
          <Telephone3 xsi:nil="true"></Telephone3>
          <TimeZoneRuleVersionNumber xsi:nil="true"></TimeZoneRuleVersionNumber>
          <UPSZone xsi:nil="true"></UPSZone>
          <UTCOffset xsi:nil="true"></UTCOffset>
          <UTCConversionTimeZoneCode xsi:nil="true"></UTCConversionTimeZoneCode>
"""

SOLUTION_XML_TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<ImportExportXml version="9.2.0.0" SolutionPackageVersion="9.2" languagecode="{language}" generatedBy="FlowCreator" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
  <SolutionManifest>
    <UniqueName>{unique_name}</UniqueName>
    <LocalizedNames>
      <LocalizedName description="{localized_name}" languagecode="{language}" />
    </LocalizedNames>
{descriptions}    <Version>{version}</Version>
    <Managed>{managed}</Managed>
    <Publisher>
      <UniqueName>{publisher_unique_name}</UniqueName>
      <LocalizedNames>
        <LocalizedName description="{publisher_localized_name}" languagecode="{language}" />
      </LocalizedNames>
      <Descriptions />
      <EMailAddress xsi:nil="true"></EMailAddress>
      <SupportingWebsiteUrl xsi:nil="true"></SupportingWebsiteUrl>
      <CustomizationPrefix>{prefix}</CustomizationPrefix>
      <CustomizationOptionValuePrefix>{option_value_prefix}</CustomizationOptionValuePrefix>
      <Addresses>
{addresses}      </Addresses>
    </Publisher>
    <RootComponents>
{root_components}    </RootComponents>
    <MissingDependencies />
  </SolutionManifest>
</ImportExportXml>
"""

WORKFLOW_XML_TEMPLATE = """\
    <Workflow WorkflowId="{{{workflow_id}}}" Name="{name}">
      <JsonFileName>{json_file_name}</JsonFileName>
      <Type>1</Type>
      <Subprocess>0</Subprocess>
      <Category>5</Category>
      <Mode>0</Mode>
      <Scope>4</Scope>
      <OnDemand>0</OnDemand>
      <TriggerOnCreate>0</TriggerOnCreate>
      <TriggerOnDelete>0</TriggerOnDelete>
      <AsyncAutodelete>0</AsyncAutodelete>
      <SyncWorkflowLogOnFailure>0</SyncWorkflowLogOnFailure>
      <StateCode>1</StateCode>
      <StatusCode>2</StatusCode>
      <RunAs>1</RunAs>
      <IsTransacted>1</IsTransacted>
      <IntroducedVersion>{version}</IntroducedVersion>
      <IsCustomizable>1</IsCustomizable>
      <BusinessProcessType>0</BusinessProcessType>
      <IsCustomProcessingStepAllowedForOtherPublishers>1</IsCustomProcessingStepAllowedForOtherPublishers>
      <ModernFlowType>0</ModernFlowType>
      <PrimaryEntity>none</PrimaryEntity>
      <LocalizedNames>
        <LocalizedName languagecode="{language}" description="{name}" />
      </LocalizedNames>
    </Workflow>
"""

CONNECTION_REFERENCE_XML_TEMPLATE = """\
    <connectionreference connectionreferencelogicalname="{logical_name}">
      <connectionreferencedisplayname>{display_name}</connectionreferencedisplayname>
      <connectorid>{connector_id}</connectorid>
      <iscustomizable>1</iscustomizable>
      <promptingbehavior>0</promptingbehavior>
      <statecode>0</statecode>
      <statuscode>1</statuscode>
    </connectionreference>
"""

CUSTOMIZATIONS_XML_TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<ImportExportXml xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
  <Entities />
  <Roles />
{workflows}  <FieldSecurityProfiles />
  <Templates />
  <EntityMaps />
  <EntityRelationships />
  <OrganizationSettings />
  <optionsets />
  <CustomControls />
  <EntityDataProviders />
{connection_references}  <Languages>
    <Language>{language}</Language>
  </Languages>
</ImportExportXml>
"""


def escape_xml(value: str) -> str:
    """Escape < > & ' " for element text and attribute values."""
    return escape(value, _XML_ENTITIES)


def sanitize_flow_name(name: str) -> str:
    sanitized = re.sub(r"\s+", "_", name)
    sanitized = re.sub(r"[^A-Za-z0-9_-]", "", sanitized)
    return sanitized or FALLBACK_FLOW_NAME


def bare_guid(workflow_id: str) -> str:
    return workflow_id.replace("{", "").replace("}", "")


def workflow_file_name(flow: FlowDefinition) -> str:
    return f"{sanitize_flow_name(flow.display_name)}-{bare_guid(flow.workflow_id).upper()}.json"


def workflow_package_path(flow: FlowDefinition) -> str:
    """Package-relative path used in customizations.xml (always '/'-separated)."""
    return f"/{WORKFLOWS_DIR}/{workflow_file_name(flow)}"


def connection_reference_logical_name(prefix: str, connector_name: str) -> str:
    """<prefix>_<connector>_<last 8 chars of the connector's last '_' segment>.

    Distinct connectors that share a prefix and suffix map to the same name.
    """
    suffix = connector_name.split("_")[-1][-8:] or "conn"
    return f"{prefix}_{connector_name}_{suffix}".lower()


def render_solution_xml(
    solution: SolutionInfo,
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
) -> str:
    if solution.description:
        descriptions = (
            "    <Descriptions>\n"
            f'      <Description description="{escape_xml(solution.description)}" languagecode="{LANGUAGE_CODE}" />\n'
            "    </Descriptions>\n"
        )
    else:
        descriptions = "    <Descriptions />\n"

    addresses = "".join(
        "        <Address>\n"
        f"          <AddressNumber>{number}</AddressNumber>\n"
        "          <AddressTypeCode>1</AddressTypeCode>\n"
        f"{_ADDRESS_FIELDS}"
        "        </Address>\n"
        for number in (1, 2)
    )
    root_components = "".join(
        f'      <RootComponent type="{WORKFLOW_COMPONENT_TYPE}" id="{{{bare_guid(flow.workflow_id)}}}" behavior="0" />\n'
        for flow in flows
    )

    return SOLUTION_XML_TEMPLATE.format(
        language=LANGUAGE_CODE,
        unique_name=escape_xml(solution.unique_name),
        localized_name=escape_xml(solution.localized_name),
        descriptions=descriptions,
        version=escape_xml(solution.version),
        managed="1" if solution.managed else "0",
        publisher_unique_name=escape_xml(publisher.unique_name),
        publisher_localized_name=escape_xml(publisher.localized_name),
        prefix=escape_xml(publisher.prefix),
        option_value_prefix=publisher.option_value_prefix,
        addresses=addresses,
        root_components=root_components,
    )


def collect_connection_references(
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
) -> dict[str, tuple[str, str]]:
    """Distinct connection references across flows: {logical name: (connector, api id)}."""
    references: dict[str, tuple[str, str]] = {}
    for flow in flows:
        for connector_name, api_id in flow.connectors.items():
            logical_name = connection_reference_logical_name(publisher.prefix, connector_name)
            existing = references.get(logical_name)
            if existing is None:
                references[logical_name] = (connector_name, api_id)
            elif existing[0] != connector_name:
                logger.warning(
                    "Connection reference %s already used by %s; %s shares it",
                    logical_name,
                    existing[0],
                    connector_name,
                )
    return references


def render_customizations_xml(
    solution: SolutionInfo,
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
) -> str:
    workflows = ""
    if flows:
        workflows = "  <Workflows>\n"
        for flow in flows:
            workflows += WORKFLOW_XML_TEMPLATE.format(
                workflow_id=bare_guid(flow.workflow_id),
                name=escape_xml(flow.display_name),
                json_file_name=escape_xml(workflow_package_path(flow)),
                version=escape_xml(solution.version),
                language=LANGUAGE_CODE,
            )
        workflows += "  </Workflows>\n"

    references = collect_connection_references(publisher, flows)
    connection_references = ""
    if references:
        connection_references = "  <connectionreferences>\n"
        for logical_name, (connector_name, api_id) in references.items():
            display_name = f"{connector_display_name(connector_name)} {solution.localized_name}"
            connection_references += CONNECTION_REFERENCE_XML_TEMPLATE.format(
                logical_name=escape_xml(logical_name),
                display_name=escape_xml(display_name),
                connector_id=escape_xml(api_id),
            )
        connection_references += "  </connectionreferences>\n"

    return CUSTOMIZATIONS_XML_TEMPLATE.format(
        workflows=workflows,
        connection_references=connection_references,
        language=LANGUAGE_CODE,
    )


def render_solution_entries(
    solution: SolutionInfo,
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
) -> dict[str, bytes]:
    """All archive entries of the solution package, keyed by archive path."""
    entries: dict[str, bytes] = {
        "solution.xml": render_solution_xml(solution, publisher, flows).encode("utf-8"),
        "customizations.xml": render_customizations_xml(solution, publisher, flows).encode("utf-8"),
        "[Content_Types].xml": CONTENT_TYPES_XML.encode("utf-8"),
    }
    for flow in flows:
        content = json.dumps(flow.definition.to_json_dict(), indent=2)
        entries[f"{WORKFLOWS_DIR}/{workflow_file_name(flow)}"] = content.encode("utf-8")
        logger.debug("  -> Workflow %s at %s", flow.display_name, workflow_package_path(flow))
    return entries


def build_solution_package(
    solution: SolutionInfo,
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
) -> bytes:
    """Build the solution archive in memory and return the zip bytes."""
    return zip_entries(render_solution_entries(solution, publisher, flows))


def export_solution_package(
    solution: SolutionInfo,
    publisher: PublisherInfo,
    flows: Sequence[FlowDefinition],
    output_dir: Path | str = "output",
) -> Path:
    """Write <output_dir>/<solution unique name>.zip and return its path."""
    logger.info("Starting solution export for %s v%s", solution.unique_name, solution.version)
    entries = render_solution_entries(solution, publisher, flows)
    zip_path = export_entries(entries, Path(output_dir), f"{solution.unique_name}.zip")
    logger.info("Solution export for %s completed", solution.unique_name)
    return zip_path
