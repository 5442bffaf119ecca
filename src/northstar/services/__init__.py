#External collaborators: routing, geocoding, truck validation and the persistence API.
#HTTP adapters only; no navigation rules.
