#!/usr/bin/env python
from typing import Dict

## Prefixes the backend uses in request and response documents.  The
## backend is not consistent about which prefix it emits for a given
## element, so these are only used when *building* documents; readers
## match on local names.
nsmap: Dict[str, str] = {
    "adtcore": "http://www.sap.com/adt/core",
    "atom": "http://www.w3.org/2005/Atom",
    "app": "http://www.w3.org/2007/app",
    "asx": "http://www.sap.com/abapxml",
    "abapsource": "http://www.sap.com/adt/abapsource",
    "chkl": "http://www.sap.com/abapxml/checklist",
    "chkrun": "http://www.sap.com/adt/checkrun",
    "del": "http://www.sap.com/adt/deletion",
    "exc": "http://www.sap.com/abapxml/types/communicationframework",
    "tm": "http://www.sap.com/cts/adt/tm",
}
