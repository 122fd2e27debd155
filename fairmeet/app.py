from flask import Flask, request, jsonify, g
from flask_cors import CORS
import asyncio
import logging
import json
from time import perf_counter
from typing import Dict, List, Optional

from .config import Settings
from .errors import EmptyCandidateSet, LocationUnavailable, NoReachableParticipants, RouteNotFound
from .geo import calculate_midpoint, distance_m
from .locations import MAX_PARTICIPANTS, MIN_PARTICIPANTS, CoordinateResolver, MeetRequest
from .maps_service import GoogleMapsService
from .models import (Coordinate, Participant, PlaceCategory, Preferences, TravelMode, UserProfile,
                     start_point_from_dict)
from .ranking import DEFAULT_ACTIVITY_RADIUS_M, DEFAULT_TRANSIT_HUB_RADIUS_M, MeetingPlanner, run_sync
from .routing import TravelTimeResolver

logger = logging.getLogger(__name__)

NOT_CONFIGURED = 'Google Maps API key not configured'


def configure_logging(settings: Settings):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def _coordinate_or_none(data) -> Optional[Coordinate]:
    if not isinstance(data, dict) or 'lat' not in data or 'lng' not in data:
        return None
    return Coordinate.from_dict(data)


def _enum_value(enum_cls, raw, default):
    if raw is None:
        return default
    try:
        return enum_cls(str(raw).lower())
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise ValueError(f"{enum_cls.__name__} must be one of: {allowed}")


def _build_meet(data: Dict) -> MeetRequest:
    participants_data = data.get('participants')
    if not isinstance(participants_data, list):
        raise ValueError('participants must be a list')
    if not MIN_PARTICIPANTS <= len(participants_data) <= MAX_PARTICIPANTS:
        raise ValueError(f"Between {MIN_PARTICIPANTS} and {MAX_PARTICIPANTS} participants are required")

    participants = []
    for index, item in enumerate(participants_data):
        if not isinstance(item, dict):
            raise ValueError('each participant must be an object')
        participant = Participant(
            name=item.get('name') or f"Participant {index + 1}",
            start=start_point_from_dict(item.get('start')),
        )
        if item.get('id'):
            participant.id = str(item['id'])
        participants.append(participant)

    return MeetRequest(
        title=data.get('title') or 'Meet',
        participants=participants,
        mode=_enum_value(TravelMode, data.get('mode'), TravelMode.DRIVE),
        category=_enum_value(PlaceCategory, data.get('category'), PlaceCategory.RESTAURANT),
    )


def create_app(settings: Optional[Settings] = None, maps_service=None) -> Flask:
    """
    Build the API app. maps_service must provide routing, place search and
    geocoding; by default it is a GoogleMapsService when an API key is set.
    """
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    if maps_service is None and settings.maps_configured:
        try:
            logger.info("Initializing Google Maps service...")
            maps_service = GoogleMapsService(settings.google_maps_api_key,
                                             max_workers=settings.maps_max_workers)
            logger.info("Google Maps service initialized successfully")
        except ValueError as e:
            logger.error(f"Error initializing Google Maps service: {e}")
            maps_service = None
    elif maps_service is None:
        logger.warning("GOOGLE_MAPS_API_KEY not found or not configured in environment variables")

    travel_times = None
    planner = None
    if maps_service is not None:
        travel_times = TravelTimeResolver(maps_service, timeout=settings.route_lookup_timeout_s)
        planner = MeetingPlanner(maps_service, travel_times)
    app.extensions['fairmeet'] = {
        'settings': settings,
        'maps_service': maps_service,
        'travel_times': travel_times,
    }

    def _resolver(current_location: Optional[Coordinate] = None) -> CoordinateResolver:
        async def _current():
            return current_location
        return CoordinateResolver(maps_service, current_location=_current)

    # Per-request timing: record start time and log duration on completion
    @app.before_request
    def _start_timer():
        g._start_time = perf_counter()

    @app.after_request
    def _log_request_duration(response):
        start = getattr(g, '_start_time', None)
        if start is not None:
            duration_ms = (perf_counter() - start) * 1000.0
            response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
            logger.info(
                "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
                request.method,
                request.full_path if request.query_string else request.path,
                response.status_code,
                duration_ms,
                request.remote_addr,
            )
        return response

    @app.teardown_request
    def _teardown_request_log(error=None):
        # If an unhandled exception occurred, ensure we still log duration
        if error is not None:
            start = getattr(g, '_start_time', None)
            duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
            logger.error(
                "request error: method=%s path=%s duration_ms=%s error=%s",
                request.method,
                request.path,
                f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
                repr(error),
            )

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'message': 'FairMeet API is running!',
            'endpoints': {
                'rank': '/api/rank',
                'transit_hubs': '/api/transit-hubs',
                'activities': '/api/activities',
                'travel_time': '/api/travel-time',
                'geocode': '/api/geocode',
                'config': '/api/config',
                'health': '/'
            },
            'status': 'healthy'
        })

    @app.route('/api/geocode', methods=['POST'])
    def geocode_address():
        """
        Geocode a single address
        Expected JSON: {"address": "123 Main St, City, State"}
        """
        if maps_service is None:
            logger.error("Google Maps API key not configured - cannot geocode")
            return jsonify({'error': NOT_CONFIGURED}), 500

        data = request.get_json(silent=True)
        if not data or not data.get('address'):
            logger.error("Address not provided in request")
            return jsonify({'error': 'Address is required'}), 400

        address = data['address']
        logger.info(f"Attempting to geocode address: '{address}'")
        result = run_sync(maps_service.geocode(address))
        if result:
            return jsonify({'success': True, 'data': result})

        logger.warning(f"Failed to geocode address: '{address}'")
        return jsonify({
            'success': False,
            'error': 'Could not geocode the provided address'
        }), 404

    @app.route('/api/travel-time', methods=['POST'])
    def get_travel_time():
        """
        Get travel time between two points
        Expected JSON: {
            "origin": {"lat": 40.7128, "lng": -74.0060},
            "destination": {"lat": 40.7589, "lng": -73.9851},
            "mode": "drive"  // optional: drive, walk, bike, bus, flight
        }
        """
        if travel_times is None:
            return jsonify({'error': NOT_CONFIGURED}), 500

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'JSON data is required'}), 400

        points = {}
        for point_name in ('origin', 'destination'):
            point = _coordinate_or_none(data.get(point_name))
            if point is None:
                return jsonify({'error': f'{point_name} must have lat and lng properties'}), 400
            points[point_name] = point

        try:
            mode = _enum_value(TravelMode, data.get('mode'), TravelMode.DRIVE)
        except ValueError as e:
            return jsonify({'error': str(e)}), 400

        try:
            seconds = run_sync(travel_times.get_travel_time(points['origin'], points['destination'], mode))
        except RouteNotFound as e:
            return jsonify({'success': False, 'error': str(e)}), 404

        return jsonify({
            'success': True,
            'data': {
                'mode': mode.value,
                'travel_time_seconds': seconds,
                'travel_time_minutes': round(seconds / 60, 1)
            }
        })

    @app.route('/api/rank', methods=['POST'])
    def rank_meeting_places():
        """
        Rank candidate meeting places for a group
        Expected JSON: {
            "title": "Friday dinner",
            "participants": [
                {"name": "Ana", "start": {"type": "address", "query": "Times Square, New York, NY"}},
                {"name": "Ben", "start": {"type": "coordinate", "lat": 40.70, "lng": -73.99, "label": "Office"}},
                {"name": "Me", "start": {"type": "current"}}
            ],
            "current_location": {"lat": 40.73, "lng": -73.93},  // used for "current" starts
            "mode": "drive",
            "category": "restaurant",
            "query": "ramen",  // optional free-text search instead of the category query
            "preferences": {"food_types": ["ramen", "thai"], "activity_types": []},
            "require_all": false
        }
        """
        logger.info("=== RANK REQUEST ===")
        if planner is None:
            logger.error("Google Maps API key not configured - cannot process request")
            return jsonify({'error': NOT_CONFIGURED}), 500

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'JSON data is required'}), 400
        logger.debug(f"Request data received: {json.dumps(data, indent=2)}")

        try:
            meet = _build_meet(data)
            profile = UserProfile(preferences=Preferences.from_dict(data.get('preferences')))
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({'error': f'Invalid request: {e}'}), 400

        resolver = _resolver(_coordinate_or_none(data.get('current_location')))
        run_sync(meet.resolve_all(resolver))
        if not meet.can_proceed():
            logger.warning(f"Unresolved participant locations: {meet.errors}")
            return jsonify({
                'success': False,
                'error': 'Could not resolve every participant location',
                'participant_errors': meet.errors,
            }), 400

        _algo_start = perf_counter()
        try:
            result = planner.find_meeting_places(
                meet, profile, query=data.get('query') or None, require_all=bool(data.get('require_all'))
            )
        except (EmptyCandidateSet, NoReachableParticipants) as e:
            logger.warning(f"Ranking produced no results: {e}")
            return jsonify({'success': False, 'error': str(e)}), 404
        _compute_ms = (perf_counter() - _algo_start) * 1000.0
        logger.info("Time to rank places = %.1f ms (%d ranked)", _compute_ms, len(result.scores))

        payload = result.to_dict()
        payload['participants'] = [{
            'id': p.id,
            'name': p.name,
            'start_label': p.start.display_label,
            **meet.resolved_coordinates[p.id].to_dict(),
        } for p in meet.participants]
        payload['mode'] = meet.mode.value
        payload['category'] = meet.category.value

        response = jsonify({'success': True, 'data': payload})
        response.headers['X-Compute-Time-ms'] = f"{_compute_ms:.1f}"
        return response

    @app.route('/api/transit-hubs', methods=['POST'])
    def find_transit_hubs():
        """
        Find transit hubs (airports) nearest the middle of a set of locations
        Expected JSON: {
            "locations": [{"type": "address", "query": "Boston, MA"}, {"type": "coordinate", "lat": 40.7, "lng": -74.0}],
            "radius": 500000  // optional, meters
        }
        """
        if planner is None:
            return jsonify({'error': NOT_CONFIGURED}), 500

        data = request.get_json(silent=True)
        locations = data.get('locations') if data else None
        if not isinstance(locations, list) or not locations:
            return jsonify({'error': 'At least one location is required'}), 400
        radius = data.get('radius', DEFAULT_TRANSIT_HUB_RADIUS_M)
        if not isinstance(radius, (int, float)) or radius <= 0:
            return jsonify({'error': 'radius must be a positive number of meters'}), 400

        try:
            starts = [start_point_from_dict(item) for item in locations]
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({'error': f'Invalid request: {e}'}), 400

        resolver = _resolver(_coordinate_or_none(data.get('current_location')))

        async def _resolve_and_search():
            coordinates = list(await asyncio.gather(*(resolver.resolve(start) for start in starts)))
            hubs = await planner.find_transit_hubs(coordinates, radius=radius)
            return coordinates, hubs

        try:
            coordinates, hubs = run_sync(_resolve_and_search())
        except LocationUnavailable as e:
            return jsonify({'success': False, 'error': str(e)}), 400

        midpoint = calculate_midpoint(coordinates)
        return jsonify({
            'success': True,
            'data': {
                'midpoint': midpoint.to_dict(),
                'transit_hubs': [{
                    **hub.to_dict(),
                    'distance_from_midpoint_km': round(distance_m(hub.coordinate, midpoint) / 1000, 1),
                } for hub in hubs],
            }
        })

    @app.route('/api/activities', methods=['POST'])
    def find_activities():
        """
        Find places to go near one location, narrowed by the caller's preferences
        Expected JSON: {
            "location": {"type": "address", "query": "Union Square, San Francisco"},
            "current_location": {"lat": 37.78, "lng": -122.41},  // used for a "current" location
            "category": "activity",  // optional, default activity
            "query": "bowling",  // optional free-text search instead of the category query
            "radius": 5000,  // optional, meters
            "preferences": {"food_types": [], "activity_types": ["museum"]}
        }
        """
        if planner is None:
            return jsonify({'error': NOT_CONFIGURED}), 500

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'JSON data is required'}), 400
        radius = data.get('radius', DEFAULT_ACTIVITY_RADIUS_M)
        if not isinstance(radius, (int, float)) or radius <= 0:
            return jsonify({'error': 'radius must be a positive number of meters'}), 400

        try:
            start = start_point_from_dict(data.get('location'))
            category = _enum_value(PlaceCategory, data.get('category'), PlaceCategory.ACTIVITY)
            profile = UserProfile(preferences=Preferences.from_dict(data.get('preferences')))
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({'error': f'Invalid request: {e}'}), 400

        resolver = _resolver(_coordinate_or_none(data.get('current_location')))
        query = data.get('query') or None

        async def _resolve_and_search():
            center = await resolver.resolve(start)
            places = await planner.find_activities(center, category=category, query=query,
                                                   profile=profile, radius=radius)
            return center, places

        try:
            center, places = run_sync(_resolve_and_search())
        except LocationUnavailable as e:
            return jsonify({'success': False, 'error': str(e)}), 400

        return jsonify({
            'success': True,
            'data': {
                'center': center.to_dict(),
                'category': category.value,
                'places': [{
                    **place.to_dict(),
                    'distance_km': round(distance_m(place.coordinate, center) / 1000, 1),
                } for place in places],
            }
        })

    @app.route('/api/config', methods=['GET'])
    def get_config():
        """
        Get frontend configuration including Google Maps API key
        """
        return jsonify({
            'success': True,
            'data': {
                'googleMapsApiKey': settings.google_maps_api_key if settings.maps_configured else None,
                'apiBaseUrl': request.host_url.rstrip('/'),
                'travelModes': [m.value for m in TravelMode],
                'categories': [c.value for c in PlaceCategory],
            }
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error'}), 500

    return app
