"""Trial exam net score arithmetic."""

from comentor.activity.exam_scoring import net_score, total_net


class TestNetScore:
    def test_four_wrong_cancel_one_correct(self):
        assert net_score(80, 20) == 75.0

    def test_no_wrong_answers(self):
        assert net_score(40, 0) == 40.0

    def test_fractional_net(self):
        assert net_score(10, 3) == 9.25

    def test_can_go_negative(self):
        assert net_score(0, 8) == -2.0


class TestTotalNet:
    def test_sums_subjects(self):
        assert total_net([(80, 20), (30, 2)]) == 104.5

    def test_rounds_to_two_decimals(self):
        assert total_net([(1, 1), (1, 1), (1, 1)]) == 2.25

    def test_empty(self):
        assert total_net([]) == 0.0
