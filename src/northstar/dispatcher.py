# dispatcher.py
# Dispatcher side: turn two addresses into a stored, shareable truck route.
# Geocoding, truck validation, routing and storage are delegated to services.

import logging
from typing import Optional

from .navigation.formatting import generate_token
from .navigation.models import RouteRecord, TripStatus, TruckSpecs
from .navigation.nav_config import NavConfig
from .services.geocoder import Geocoder
from .services.osrm_client import OSRMClient
from .services.persistence import LocalRouteStore, PersistenceClient, PersistenceError, RouteNotFoundError
from .services.truck_validator import TruckRouteValidator, TruckValidationError

logger = logging.getLogger(__name__)


class TruckRestrictionError(Exception):
    """The route has restrictions (low bridges, weight limits) for this truck."""

    def __init__(self, warnings) -> None:
        self.warnings = list(warnings)
        super().__init__(
            "This route has restrictions for your truck specifications. "
            "It may contain low bridges or weight-restricted roads."
        )


class Dispatcher:
    """
    Route creation and lookup for dispatchers.

    Args:
        config:    NavConfig instance.
        geocoder:  Geocoder (address -> coordinate).
        router:    OSRMClient (coordinates -> RoutePlan).
        validator: TruckRouteValidator; None skips the truck check.
        api:       PersistenceClient.
        store:     LocalRouteStore used when the API is unreachable.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        geocoder: Optional[Geocoder] = None,
        router: Optional[OSRMClient] = None,
        validator: Optional[TruckRouteValidator] = None,
        api: Optional[PersistenceClient] = None,
        store: Optional[LocalRouteStore] = None,
    ) -> None:
        self.config = config or NavConfig()
        self.geocoder = geocoder or Geocoder(self.config)
        self.router = router or OSRMClient(self.config)
        self.validator = validator
        self.api = api or PersistenceClient(self.config)
        self.store = store or LocalRouteStore(self.config)

    # ------------------------------------------------------------------
    # Route creation
    # ------------------------------------------------------------------

    def create_route(
        self,
        name: str,
        pickup_address: str,
        delivery_address: str,
        truck: Optional[TruckSpecs] = None,
        notes: str = "",
        driver_id: Optional[int] = None,
        token: Optional[str] = None,
        allow_restricted: bool = False,
    ) -> RouteRecord:
        """
        Geocode, validate, route and store a new route (or update `token`).

        Raises:
            ValueError:            a required field is empty.
            GeocodingError:        an address could not be found.
            TruckRestrictionError: restricted route and allow_restricted is False.
            RoutingError:          the routing service failed.
        """
        if not name or not pickup_address or not delivery_address:
            raise ValueError("Route name, pickup and delivery locations are required.")
        truck = truck or TruckSpecs()

        pickup = self.geocoder.geocode(pickup_address)
        delivery = self.geocoder.geocode(delivery_address)

        truck_safe = True
        if self.validator is not None:
            try:
                result = self.validator.validate(pickup.coord, delivery.coord, truck)
            except TruckValidationError as e:
                # an unreachable validator does not block dispatch
                logger.error(f"Truck validation error: {e}")
            else:
                truck_safe = result.valid
                if not result.valid and not allow_restricted:
                    raise TruckRestrictionError(result.warnings)

        plan = self.router.route(pickup.coord, delivery.coord)

        record = RouteRecord(
            token=token or generate_token(),
            name=name,
            pickup=pickup,
            delivery=delivery,
            plan=plan,
            truck=truck,
            notes=notes or "",
            driver_id=driver_id,
            status=TripStatus.PENDING,
            truck_safe=truck_safe,
        )
        self.save(record, update=token is not None)
        return record

    def save(self, record: RouteRecord, update: bool = False) -> bool:
        """
        Store through the API, falling back to the local store.

        Returns:
            True when the API accepted the route, False when it went to the
            local store instead.
        """
        try:
            if update:
                self.api.update_route(record.token, record.to_dict())
            else:
                self.api.create_route(record)
            logger.info(f"Route {record.token} saved to API.")
            return True
        except PersistenceError as e:
            logger.error(f"Error saving route to API: {e}")
            self.store.save(record)
            return False

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def load_route(self, token: str) -> RouteRecord:
        """
        API first, then the local store.

        Raises:
            RouteNotFoundError: neither source knows the token.
        """
        try:
            return self.api.get_route(token)
        except PersistenceError as e:
            logger.warning(f"Error loading route {token} from API: {e}")

        record = self.store.load(token)
        if record is None:
            raise RouteNotFoundError(f"No route found for token {token}")
        logger.info(f"Found stored route data for {token}")
        return record

    def share_link(self, token: str, base_url: str = "") -> str:
        return f"{base_url.rstrip('/')}/northstar/driver.html?token={token}"
