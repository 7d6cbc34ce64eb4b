from fc_hooks import Hook


class Size(Hook):
    def run(self):
        return {"errors": 0, "warnings": 2, "information": {"sizeKb": 500}, "issue": None}
