from django import forms


class AssetManifest:
    """
    Scripts a rendered listing page needs, ordered by weight.
    Adding the same path twice keeps the first weight.
    """

    def __init__(self):
        self._scripts = {}

    def add_script(self, path, weight=0):
        self._scripts.setdefault(path, weight)

    @property
    def scripts(self):
        return [path for path, _ in sorted(self._scripts.items(), key=lambda item: item[1])]

    @property
    def media(self):
        return forms.Media(js=self.scripts)
