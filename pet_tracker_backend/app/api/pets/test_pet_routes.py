# app/api/pets/test_pet_routes.py
"""
반려동물 등록/조회/삭제 API 테스트
"""

def test_register_and_list_pets(client, auth_headers):
    headers = auth_headers()
    res = client.post('/api/pets/', json={'name': 'Bori', 'species': 'dog', 'age': 3}, headers=headers)
    assert res.status_code == 201
    pet = res.get_json()
    assert pet['name'] == 'Bori'
    assert pet['safe_zones'] == []

    pets = client.get('/api/pets/my-pets', headers=headers).get_json()
    assert [p['pet_id'] for p in pets] == [pet['pet_id']]

def test_register_pet_validation(client, auth_headers):
    res = client.post('/api/pets/', json={'species': 'dog'}, headers=auth_headers())
    assert res.status_code == 400
    assert 'name' in res.get_json()['details']

def test_pet_profile_owner_only(client, auth_headers, seed):
    seed.linked()
    assert client.get('/api/pets/pet-1', headers=auth_headers()).status_code == 200
    assert client.get('/api/pets/pet-1', headers=auth_headers('intruder')).status_code == 403
    assert client.delete('/api/pets/pet-1', headers=auth_headers('intruder')).status_code == 403
    assert client.delete('/api/pets/pet-1', headers=auth_headers()).status_code == 204
