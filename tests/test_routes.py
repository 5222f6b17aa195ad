"""
tests/test_routes.py — JSON planning surface under /conductor.

Bed 5 is the first Solar (528Hz) bed in the seeded data; bed 6 the second.
"""

import pytest
import os
import tempfile

from app import create_app


@pytest.fixture
def app():
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE': db_path,
        'SECRET_KEY': 'dev-key-for-testing',
        'WTF_CSRF_ENABLED': False,
    })
    yield app

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def crop_ids(app):
    """Crop name -> id for the seeded catalog."""
    from database import get_crops
    with app.app_context():
        return {c.name: c.id for c in get_crops()}


def plant(client, crop_id, role, bed_id=5, override=False):
    return client.post(f'/conductor/beds/{bed_id}/plantings', json={
        'crop_id': crop_id, 'role': role, 'override': override,
    })


class TestReadRoutes:

    def test_zones(self, client):
        rv = client.get('/conductor/zones')
        assert rv.status_code == 200
        data = rv.get_json()
        assert len(data['zones']) == 7
        assert len(data['inoculant_options']) == 8
        solar = next(z for z in data['zones'] if z['frequency_hz'] == 528)
        assert solar['recommendation']['eleventh']['name'] == 'Wine Cap'

    def test_beds(self, client):
        rv = client.get('/conductor/beds')
        assert rv.status_code == 200
        beds = rv.get_json()
        assert len(beds) == 14
        assert beds[0]['score']['percentage'] == 0
        assert beds[0]['score']['label'] == 'Building...'
        assert beds[0]['water_multiplier'] == 1.0

    def test_bed_detail(self, client):
        rv = client.get('/conductor/beds/5')
        assert rv.status_code == 200
        data = rv.get_json()
        assert data['frequency_hz'] == 528
        assert data['zone_name'] == 'Solar'
        assert data['plantings'] == []
        assert data['aerial_crop'] is None

    def test_unknown_bed(self, client):
        assert client.get('/conductor/beds/999').status_code == 404
        assert client.post('/conductor/beds/999/generate', json={}).status_code == 404

    def test_csrf_token(self, client):
        rv = client.get('/conductor/csrf-token')
        assert rv.status_code == 200
        assert rv.get_json()['csrf_token']


class TestCandidates:

    def test_candidates_for_fifth(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = client.get('/conductor/beds/5/candidates/fifth')
        assert rv.status_code == 200
        data = rv.get_json()
        assert data['role'] == '5th (Stabilizer)'
        names = [c['crop']['name'] for c in data['candidates']]
        assert names == ['winter_squash', 'sunflower', 'cowpea_solar']
        kinds = [c['verdict']['kind'] for c in data['candidates']]
        assert kinds == ['nutritional', 'structural', 'none']
        assert data['candidates'][2]['plant_count'] == 623

    def test_unknown_role(self, client):
        assert client.get('/conductor/beds/5/candidates/ninth').status_code == 400


class TestCheck:

    def test_clean(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/check', json={
            'crop_id': crop_ids['pole_bean'], 'role': 'third'})
        assert rv.status_code == 200
        data = rv.get_json()
        assert data['verdict']['kind'] == 'none'
        assert data['conflicts'] == []

    def test_frequency_mismatch(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/check', json={
            'crop_id': crop_ids['tomato'], 'role': 'root'})
        verdict = rv.get_json()['verdict']
        assert verdict['kind'] == 'frequency'
        assert verdict['severity'] == 'error'
        assert verdict['blocks'] is True

    def test_override(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/check', json={
            'crop_id': crop_ids['tomato'], 'role': 'root', 'override': 'true'})
        verdict = rv.get_json()['verdict']
        assert verdict['severity'] == 'warning'
        assert verdict['blocks'] is False

    def test_bad_input(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/check', json={'crop_id': 'abc', 'role': 'root'})
        assert rv.status_code == 400
        rv = client.post('/conductor/beds/5/check', json={'crop_id': 9999, 'role': 'root'})
        assert rv.status_code == 404


class TestPlantings:

    def test_plant_root(self, client, crop_ids):
        rv = plant(client, crop_ids['corn'], 'root')
        assert rv.status_code == 201
        assert rv.get_json()['plant_count'] == 277

        detail = client.get('/conductor/beds/5').get_json()
        assert detail['plantings'][0]['crop']['name'] == 'corn'
        assert detail['score']['label'] == 'Root'
        assert detail['score']['percentage'] == 17

    def test_role_already_filled(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = plant(client, crop_ids['corn'], 'root')
        assert rv.status_code == 409
        assert 'already filled' in rv.get_json()['error']

    def test_frequency_mismatch_blocks(self, client, crop_ids):
        rv = plant(client, crop_ids['tomato'], 'root')
        assert rv.status_code == 409
        data = rv.get_json()
        assert data['requires_override'] is False
        assert data['verdicts'][0]['kind'] == 'frequency'

    def test_override_allows_out_of_tune_crop(self, client, crop_ids):
        rv = plant(client, crop_ids['tomato'], 'root', override=True)
        assert rv.status_code == 201
        assert rv.get_json()['verdicts'][0]['severity'] == 'warning'

    def test_warning_requires_override(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = plant(client, crop_ids['winter_squash'], 'fifth')
        assert rv.status_code == 409
        data = rv.get_json()
        assert data['requires_override'] is True
        assert data['verdicts'][0]['kind'] == 'nutritional'

        rv = plant(client, crop_ids['winter_squash'], 'fifth', override=True)
        assert rv.status_code == 201

    def test_overlay_role_rejected(self, client, crop_ids):
        rv = plant(client, crop_ids['wine_cap'], 'inoculant')
        assert rv.status_code == 400

    def test_form_encoded_body(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/plantings', data={
            'crop_id': str(crop_ids['corn']), 'role': 'Root (Lead)'})
        assert rv.status_code == 201

    def test_remove(self, client, crop_ids):
        planting_id = plant(client, crop_ids['corn'], 'root').get_json()['planting_id']
        rv = client.post(f'/conductor/beds/5/plantings/{planting_id}/delete')
        assert rv.status_code == 200
        rv = client.post(f'/conductor/beds/5/plantings/{planting_id}/delete')
        assert rv.status_code == 404

    def test_dimensions_change_plant_counts(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/dimensions', json={'length_ft': 30, 'width_ft': 4})
        assert rv.status_code == 200
        rv = plant(client, crop_ids['corn'], 'root')
        assert rv.get_json()['plant_count'] == 138

    def test_bad_dimensions(self, client):
        rv = client.post('/conductor/beds/5/dimensions', json={'length_ft': -1, 'width_ft': 4})
        assert rv.status_code == 400

    @pytest.mark.parametrize('value', ['nan', 'inf', '-inf'])
    def test_non_finite_dimensions(self, client, value):
        rv = client.post('/conductor/beds/5/dimensions', json={'length_ft': value, 'width_ft': 4})
        assert rv.status_code == 400
        assert client.get('/conductor/beds/5').get_json()['bed_length_ft'] == 60


class TestGenerate:

    def test_needs_root(self, client):
        rv = client.post('/conductor/beds/5/generate', json={})
        assert rv.status_code == 200
        assert rv.get_json()['chord'] is None

    def test_uses_committed_root(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = client.post('/conductor/beds/5/generate', json={})
        chord = rv.get_json()['chord']
        assert chord['intervals']['root']['crop']['name'] == 'corn'
        assert chord['intervals']['third']['crop']['name'] == 'pole_bean'
        assert chord['intervals']['fifth']['crop']['name'] == 'cowpea_solar'
        assert chord['full_voicing'] is True

    def test_explicit_root_writes_nothing(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/generate', json={'root_crop_id': crop_ids['corn']})
        assert rv.get_json()['chord']['zone_name'] == 'Solar'
        detail = client.get('/conductor/beds/5').get_json()
        assert detail['plantings'] == []


class TestOverlaysAndBrix:

    def test_inoculant(self, client, crop_ids):
        rv = client.post('/conductor/beds/5/overlays', json={'inoculant_type': 'Wine Cap'})
        assert rv.status_code == 200
        detail = client.get('/conductor/beds/5').get_json()
        assert detail['inoculant_recommended'] is True
        # No Root yet: the fungal network has nothing to feed
        assert detail['water_multiplier'] == 1.0

        plant(client, crop_ids['corn'], 'root')
        detail = client.get('/conductor/beds/5').get_json()
        assert detail['water_multiplier'] == 0.9

    def test_unknown_inoculant(self, client):
        rv = client.post('/conductor/beds/5/overlays', json={'inoculant_type': 'Truffle'})
        assert rv.status_code == 400

    def test_aerial(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = client.post('/conductor/beds/5/overlays', json={
            'inoculant_type': 'Wine Cap', 'aerial_crop_id': crop_ids['golden_fennel']})
        assert rv.status_code == 200

        detail = client.get('/conductor/beds/5').get_json()
        assert detail['aerial_crop']['name'] == 'golden_fennel'
        assert detail['aerial_recommended'] is True
        assert detail['score']['percentage'] == 50

    def test_aerial_conflict_needs_override(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        rv = client.post('/conductor/beds/5/overlays', json={
            'aerial_crop_id': crop_ids['verbena_bonariensis']})
        assert rv.status_code == 409
        assert rv.get_json()['verdicts'][0]['kind'] == 'structural'

        rv = client.post('/conductor/beds/5/overlays', json={
            'aerial_crop_id': crop_ids['verbena_bonariensis'], 'override': True})
        assert rv.status_code == 200

    def test_clear_aerial_keeps_inoculant(self, client, crop_ids):
        client.post('/conductor/beds/5/overlays', json={
            'inoculant_type': 'Wine Cap', 'aerial_crop_id': crop_ids['golden_fennel']})
        rv = client.post('/conductor/beds/5/overlays', json={'aerial_crop_id': None})
        data = rv.get_json()
        assert data['aerial_crop_id'] is None
        assert data['inoculant_type'] == 'Wine Cap'

    def test_brix(self, client, crop_ids):
        plant(client, crop_ids['corn'], 'root')
        plant(client, crop_ids['cowpea_solar'], 'fifth')
        rv = client.post('/conductor/beds/5/brix', json={'brix': 20})
        assert rv.status_code == 200
        assert rv.get_json()['vitality_status'] == 'thriving'

        detail = client.get('/conductor/beds/5').get_json()
        assert detail['projected_brix'] == 23
        assert detail['signal']['bars'] == 5

    def test_bad_brix(self, client):
        assert client.post('/conductor/beds/5/brix', json={'brix': 'sweet'}).status_code == 400
        assert client.post('/conductor/beds/5/brix', json={'brix': 90}).status_code == 400

    @pytest.mark.parametrize('value', ['nan', 'inf'])
    def test_non_finite_brix(self, client, value):
        rv = client.post('/conductor/beds/5/brix', json={'brix': value})
        assert rv.status_code == 400
        assert client.get('/conductor/beds/5').get_json()['internal_brix'] is None

    def test_clear_brix(self, client):
        client.post('/conductor/beds/5/brix', json={'brix': 12})
        rv = client.post('/conductor/beds/5/brix', json={'brix': None})
        assert rv.get_json()['vitality_status'] == 'pending'
