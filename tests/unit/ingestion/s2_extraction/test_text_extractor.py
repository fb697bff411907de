"""
Тесты для TextExtractor и ContainerFinder.
"""

from datetime import date, datetime

import pytest

from contracts.status_event_dto import LocationType
from src.ingestion.s2_extraction import ContainerFinder, TextExtractor, looks_like_container, repair_prefix


SCENARIO_A = (
    "Контейнер MSCU1234560 на станции Гончарово, 1857 км до Иня-Восточная. "
    "ETA 04.12.2025"
)


@pytest.fixture
def extractor(reference):
    return TextExtractor(reference)


class TestContainerFinder:

    def test_finds_iso_number(self):
        assert ContainerFinder().find(SCENARIO_A) == ["MSCU1234560"]

    def test_finds_several_in_order(self):
        text = "Контейнеры MSCU1234566 и MSKU1111112 в порту Владивосток"
        assert ContainerFinder().find(text) == ["MSCU1234566", "MSKU1111112"]

    def test_deduplicates_case_insensitive(self):
        text = "MSCU1234566 ... повторно mscu1234566"
        assert ContainerFinder().find(text) == ["MSCU1234566"]

    def test_number_with_space(self):
        assert ContainerFinder().find("ктк MSCU 1234566 прибыл") == ["MSCU1234566"]

    def test_repairs_digit_in_prefix(self):
        assert ContainerFinder().find("Контейнер MSC01234560 в пути") == ["MSCO1234560"]

    def test_no_numbers(self):
        assert ContainerFinder().find("Добрый день, статус без изменений") == []

    @pytest.mark.parametrize("candidate, expected", [
        ("MSC01234560", "MSCO1234560"),
        ("M5CU1234566", "MSCU1234566"),
        ("MSCU1234566", "MSCU1234566"),
        ("MSC0", "MSC0"),
    ])
    def test_repair_prefix(self, candidate, expected):
        assert repair_prefix(candidate) == expected

    @pytest.mark.parametrize("value, expected", [
        ("MSCU1234566", True),
        ("mscu 123456", True),
        ('"MSCU1234566"', True),
        ("MSCU12345", False),
        ("Контейнер", False),
    ])
    def test_looks_like_container(self, value, expected):
        assert looks_like_container(value) is expected


class TestScenarioA:

    def test_fields(self, extractor):
        item = extractor.extract(SCENARIO_A, "MSCU1234560")

        assert item.container_number == "MSCU1234560"
        assert item.status_code == "ON_RAIL"
        assert item.status_text == "На ЖД"
        assert item.location == "Гончарово"
        assert item.location_type == LocationType.STATION
        assert item.distance_to_destination == 1857
        assert item.eta == date(2025, 12, 4)
        assert item.destination == "Иня-Восточная"
        assert item.raw_source == SCENARIO_A

    def test_confidence_capped(self, extractor):
        item = extractor.extract(SCENARIO_A, "MSCU1234560")
        assert item.extraction_confidence == 1.0

    def test_eta_is_not_event_time(self, extractor):
        item = extractor.extract(SCENARIO_A, "MSCU1234560")
        assert item.event_time is None

    def test_without_container_lower_confidence(self, extractor):
        with_number = extractor.extract("на станции Гончарово", "MSCU1234566")
        without = extractor.extract("на станции Гончарово", None)
        assert without.container_number is None
        assert without.extraction_confidence < with_number.extraction_confidence


class TestFields:

    def test_port_location(self, extractor):
        location, location_type = extractor.extract_location("Контейнер в порту Владивосток")
        assert location == "Владивосток"
        assert location_type == LocationType.PORT

    def test_station_abbreviation(self, extractor):
        location, location_type = extractor.extract_location("Прибыл на ст. Кемерово")
        assert location == "Кемерово"
        assert location_type == LocationType.STATION

    def test_labelled_location(self, extractor):
        location, location_type = extractor.extract_location("Местоположение: Омск.")
        assert location == "Омск"
        assert location_type is None

    def test_no_location(self, extractor):
        assert extractor.extract_location("Статус без изменений") == (None, None)

    def test_labelled_distance_with_thousands(self, extractor):
        assert extractor.extract_distance("Расстояние: 1 200 км") == 1200

    def test_eta_month_name(self, extractor):
        assert extractor.extract_eta("Контейнер MSCU1234566 в пути, ETA 15 декабря 2025") == date(2025, 12, 15)

    def test_eta_out_of_range_ignored(self, extractor):
        assert extractor.extract_eta("ETA 04.12.1999") is None

    def test_unload_date(self, extractor):
        assert extractor.extract_unload_date("разгрузка 10.12.2025") == date(2025, 12, 10)

    def test_route_with_arrow(self, extractor):
        assert extractor.extract_route("Маршрут: Shanghai → Moscow") == ("Shanghai", "Moscow")

    def test_route_from_to_russian(self, extractor):
        assert extractor.extract_route("Следует из Циндао в Новосибирск") == ("Циндао", "Новосибирск")

    def test_route_hyphenated_name_is_not_route(self, extractor):
        assert extractor.extract_route("Линия Hapag-Lloyd") == (None, None)

    def test_carrier_label(self, extractor):
        assert extractor.extract_carrier("Перевозчик: FESCO\nКонтейнер в пути") == "FESCO"

    def test_known_carrier(self, extractor):
        text = "Контейнер MSCU1234566 линии Maersk в порту Владивосток"
        assert extractor.extract_carrier(text) == "Maersk"

    def test_event_time_labelled(self, extractor):
        text = "По состоянию на 01.11.2025 контейнер в пути, ETA 04.12.2025"
        assert extractor.extract_event_time(text) == datetime(2025, 11, 1)

    def test_operator_comment(self, extractor):
        text = "Контейнер в пути\nКомментарий: задержка на границе"
        assert extractor.extract_operator_comment(text) == "задержка на границе"

    def test_source_keyword(self, extractor):
        assert extractor.extract_source_info("Данные из выгрузки Excel") == "Excel"


class TestStatus:

    def test_multiple_containers_share_text(self, extractor):
        text = "Контейнеры MSCU1234566 и MSKU1111112 в порту Владивосток"
        items = [extractor.extract(text, n) for n in ContainerFinder().find(text)]

        assert [i.container_number for i in items] == ["MSCU1234566", "MSKU1111112"]
        assert all(i.status_code == "IN_PORT" for i in items)
        assert all(i.location == "Владивосток" for i in items)

    def test_in_transit(self, extractor):
        item = extractor.extract("Контейнер MSCU1234566 в пути", "MSCU1234566")
        assert item.status_code == "IN_TRANSIT"

    def test_unknown(self, extractor):
        item = extractor.extract("Добрый день", None)
        assert item.status_code == "UNKNOWN"
