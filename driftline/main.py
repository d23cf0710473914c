import logging
import re
import secrets

import requests
from flask import Flask, jsonify, request

from driftline import config
from driftline.cache import TTLCache
from driftline.intelligence.altitude import altitude_statistics, atmospheric_layer, filter_by_altitude
from driftline.intelligence.anomalies import nearest_neighbor_relationships
from driftline.intelligence.clusters import detect_clusters
from driftline.intelligence.daemon import RefreshDaemon
from driftline.intelligence.grid import density_grid, density_stats, top_cells
from driftline.intelligence.motion import (compare_with_model, filter_by_time_window,
                                           pressure_level_label, speed_tier, track_statistics)
from driftline.objects.openmeteo import OpenMeteoClient
from driftline.objects.windborne import fetch_raw_hour, fetch_snapshots

logger = logging.getLogger(__name__)

HOUR_PATTERN = re.compile(r'^\d{2}$')


def create_app(daemon=None, weather=None, session=None, cache=None):
    app = Flask(__name__)

    flask_secret = config.FLASK_SECRET_KEY
    if not flask_secret:
        flask_secret = secrets.token_hex(32)
        logger.warning("FLASK_SECRET_KEY not set. Using generated key for this session.")
    app.secret_key = flask_secret

    http = session or requests.Session()
    cache = cache if cache is not None else TTLCache()
    daemon = daemon or RefreshDaemon(lambda: fetch_snapshots(session=http))
    weather = weather or OpenMeteoClient(session=http, cache=cache)

    app.extensions['driftline'] = {'daemon': daemon, 'weather': weather, 'cache': cache}

    def no_data():
        return jsonify(success=False, message='No balloon data available'), 503

    @app.route('/api/<string:hour>.json')
    def hour_proxy(hour):
        if not HOUR_PATTERN.match(hour):
            return jsonify(error='Invalid hour parameter'), 400

        def load():
            response = fetch_raw_hour(int(hour), http)
            response.raise_for_status()
            return response.json()

        try:
            data = cache.get_or_fetch('snapshot', hour, load)
        except requests.HTTPError as e:
            upstream = e.response
            return jsonify(error=f"Failed to fetch data: {upstream.reason}"), upstream.status_code
        except requests.RequestException as e:
            logger.error("Error fetching balloon data for %s.json: %s", hour, e)
            return jsonify(error='Internal server error'), 500
        except ValueError as e:
            logger.error("Upstream returned invalid JSON for %s.json: %s", hour, e)
            return jsonify(error='Internal server error'), 500

        resp = jsonify(data)
        resp.headers['Access-Control-Allow-Origin'] = '*'
        resp.headers['Access-Control-Allow-Methods'] = 'GET'
        resp.headers['Cache-Control'] = 's-maxage=3600, stale-while-revalidate'
        return resp

    @app.route('/api/status')
    def status():
        constellation = daemon.constellation
        return jsonify(
            success=True,
            daemon=daemon.get_status(),
            summary=constellation.summary() if constellation else None
        )

    @app.route('/api/refresh', methods=['POST'])
    def refresh():
        published = daemon.refresh()
        if published:
            cache.invalidate('snapshot')
        if daemon.constellation is None:
            return jsonify(success=False, message='No balloon data available', error=daemon.last_error), 503
        return jsonify(success=True, published=published, summary=daemon.constellation.summary())

    @app.route('/api/balloons')
    def balloons():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        min_alt = request.args.get('min_alt', type=float)
        max_alt = request.args.get('max_alt', type=float)
        selected = filter_by_altitude(constellation.balloons, min_alt, max_alt)

        return jsonify(
            success=True,
            total=len(selected),
            balloons=[b.to_dict() for b in selected]
        )

    @app.route('/api/tracks')
    def tracks():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        start = request.args.get('start', type=int)
        end = request.args.get('end', type=int)
        selected = constellation.tracks
        if start is not None or end is not None:
            try:
                selected = filter_by_time_window(
                    selected,
                    start if start is not None else -1,
                    end if end is not None else config.HOURS_TO_FETCH
                )
            except ValueError as e:
                return jsonify(success=False, message=str(e)), 400

        return jsonify(
            success=True,
            tracks={bid: [p.to_dict() for p in track.points] for bid, track in selected.items()}
        )

    @app.route('/api/tracks/<balloon_id>')
    def track_detail(balloon_id):
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        track = constellation.tracks.get(balloon_id)
        if track is None:
            return jsonify(success=False, message=f"Unknown balloon {balloon_id}"), 404

        return jsonify(
            success=True,
            balloon=track.to_dict(),
            analysis=constellation.analyses[balloon_id].to_dict()
        )

    @app.route('/api/clusters')
    def clusters():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        overrides = {
            'eps': request.args.get('eps', type=float),
            'min_pts': request.args.get('min_pts', type=int),
            'altitude_weight': request.args.get('altitude_weight', type=float),
        }
        overrides = {k: v for k, v in overrides.items() if v is not None}

        found = constellation.clusters
        if overrides:
            try:
                found = detect_clusters(constellation.balloons, **overrides)
            except ValueError as e:
                return jsonify(success=False, message=str(e)), 400

        return jsonify(
            success=True,
            total=len(found),
            clustered=sum(c.count for c in found),
            clusters=[c.to_dict() for c in found]
        )

    @app.route('/api/density')
    def density():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        cell_size = request.args.get('cell_size', type=float)
        grid = constellation.density
        summary = constellation.density_summary
        if cell_size is not None:
            try:
                grid = density_grid(constellation.balloons, cell_size)
            except ValueError as e:
                return jsonify(success=False, message=str(e)), 400
            summary = density_stats(grid, config.HOTSPOT_THRESHOLD)

        return jsonify(
            success=True,
            stats=summary,
            cells=[c.to_dict() for c in grid],
            top=[c.to_dict() for c in top_cells(grid)]
        )

    @app.route('/api/regions')
    def regions():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()
        return jsonify(success=True, **constellation.distribution)

    @app.route('/api/altitude')
    def altitude():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        min_alt = request.args.get('min_alt', type=float)
        max_alt = request.args.get('max_alt', type=float)
        stats = constellation.altitude
        if min_alt is not None or max_alt is not None:
            stats = altitude_statistics(filter_by_altitude(constellation.balloons, min_alt, max_alt))

        return jsonify(success=True, layer=atmospheric_layer(stats.mean_m), **stats.to_dict())

    @app.route('/api/anomalies')
    def anomalies():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        return jsonify(
            success=True,
            tracks={bid: a.to_dict() for bid, a in constellation.analyses.items()},
            convergence=[c.to_dict() for c in constellation.convergence],
            shear_layers=[s.to_dict() for s in constellation.shear_layers]
        )

    @app.route('/api/shear')
    def shear():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()
        return jsonify(success=True, shear_layers=[s.to_dict() for s in constellation.shear_layers])

    @app.route('/api/relationships')
    def relationships():
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        found = nearest_neighbor_relationships(constellation.balloons)
        return jsonify(success=True, relationships=[r.to_dict() for r in found])

    @app.route('/api/drift/<balloon_id>')
    def drift(balloon_id):
        constellation = daemon.constellation
        if constellation is None:
            return no_data()

        track = constellation.tracks.get(balloon_id)
        if track is None:
            return jsonify(success=False, message=f"Unknown balloon {balloon_id}"), 404

        comparisons = compare_with_model(track, weather, getattr(weather, 'lookup_many', None))
        stats = track_statistics(track)
        current = track.current_position

        return jsonify(
            success=True,
            balloon_id=balloon_id,
            pressure_level=pressure_level_label(current.altitude_m),
            speed_tier=speed_tier(stats.average_speed_kmh),
            model_coverage=len([c for c in comparisons if c.error is not None]),
            segments=[c.to_dict() for c in comparisons]
        )

    return app


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    app = create_app()
    app.extensions['driftline']['daemon'].start()
    app.run(host='0.0.0.0', port=config.PORT)


if __name__ == '__main__':
    main()
