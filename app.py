import os
import logging
from pathlib import Path
from flask import Flask, render_template, request, jsonify

from pricing import QuoteError, ValidationError, parse_weight_kg, quote_shipment, require_rate_data
from rate_data import RateDataProvider

logging.basicConfig(level=logging.INFO)
app = Flask(__name__)

BASE_DIR = Path(__file__).resolve().parent
RATE_DATA_DIR = os.environ.get('RATE_DATA_DIR') or str(BASE_DIR / 'data')

# Loaded lazily on the first quote and kept for the life of the process.
app.config['RATE_DATA'] = RateDataProvider(RATE_DATA_DIR)

USAGE_HINT = "POST JSON { pincode, weightKg, serviceType, transportMode }"
REQUIRED_PARAMS_MSG = "Missing required params: pincode, weightKg, serviceType"
# Every method reaches the view so non-POST requests get the usage hint, not 405.
SEARCH_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']


def parse_quote_request(payload):
    """Pull the quote inputs out of a request body, raising ValidationError."""
    if not isinstance(payload, dict):
        payload = {}
    pincode = str(payload.get('pincode') or '').strip()
    weight_kg = payload.get('weightKg')
    service_type = str(payload.get('serviceType') or '').strip()
    if not pincode or weight_kg in (None, '', 0) or not service_type:
        raise ValidationError(REQUIRED_PARAMS_MSG)
    return {
        'pincode': pincode,
        'weight_kg': parse_weight_kg(weight_kg),
        'service_type': service_type,
        'transport_mode': payload.get('transportMode'),
    }


@app.route('/')
def index():
    return render_template('index.html')


@app.route('/api/search', methods=SEARCH_METHODS)
def search():
    """Quote a shipment. Anything but POST gets the usage hint."""
    if request.method != 'POST':
        return jsonify({'ok': True, 'msg': USAGE_HINT})

    provider = app.config['RATE_DATA']
    try:
        # Missing reference data is reported before any input problem.
        require_rate_data(provider)
        params = parse_quote_request(request.get_json(silent=True) or {})
        quote = quote_shipment(provider, **params)
        return jsonify(quote.to_dict())
    except QuoteError as e:
        app.logger.info(f"Quote rejected ({e.status_code}): {e.msg}")
        return jsonify({'ok': False, 'msg': e.msg}), e.status_code
    except Exception as e:
        app.logger.exception('Error computing quote')
        return jsonify({'ok': False, 'msg': str(e)}), 500


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=True, host='0.0.0.0', port=port, threaded=True, use_reloader=False)
