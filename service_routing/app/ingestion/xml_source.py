"""
Bulk parcel document reader.

Documents look like::

    <Container>
      <Parcel>
        <TrackingId>PCL-001</TrackingId>
        <Weight>1.30</Weight>
        <Value>50</Value>
        <Destination>Munich</Destination>
      </Parcel>
    </Container>

``Parcels`` is accepted as the root element as well. Uploaded documents are
untrusted, so parsing goes through defusedxml: entity declarations and
external references are refused.
"""

from typing import Dict, List, Union
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from shared.errors import ValidationError

CONTAINER_TAGS = ("Container", "Parcels")
PARCEL_TAG = "Parcel"


def _record(element: Element) -> Dict[str, str]:
    return {child.tag: (child.text or "").strip() for child in element}


def parse_parcel_document(document: Union[str, bytes]) -> List[Dict[str, str]]:
    try:
        root = SafeET.fromstring(document)
    except SafeET.ParseError as e:
        raise ValidationError("Failed to parse parcel document", {"error": str(e)}) from e
    except DefusedXmlException as e:
        raise ValidationError("Parcel document contains forbidden XML constructs", {"error": str(e)}) from e

    if root.tag not in CONTAINER_TAGS:
        return []
    return [_record(element) for element in root.findall(PARCEL_TAG)]
